"""Auth Service - remote façade for credential checks.

An unknown username and a wrong password produce the same result shape for
the caller: an unauthenticated Employee carrying only the submitted
username. Only the audit entry tells the two apart.
"""
from stockroom.core.utils.logging_config import get_logger
from stockroom.exceptions import RemoteFault
from stockroom.models import Employee

logger = get_logger('stockroom.auth')


class AuthService:
    """Service exposing the authentication remote contract."""

    REMOTE_METHODS = frozenset({'authenticate'})

    def __init__(self, employee_dao, audit):
        self.employee_dao = employee_dao
        self.audit = audit

    def authenticate(self, username: str, password: str) -> Employee:
        """Authenticate an employee by username and password.

        Args:
            username: The employee's username
            password: The plaintext password

        Returns:
            The authenticated Employee (password hash stripped), or an
            unauthenticated Employee for any credential failure.

        Raises:
            RemoteFault: the credential check could not be performed.
        """
        if not username or not password:
            self.audit.log('AUTH', 'Authentication attempt with missing credentials', 'system')
            return Employee.unauthenticated(username or '')

        try:
            employee = self.employee_dao.authenticate(username, password)
        except Exception as e:
            self.audit.log('ERROR', f'Authentication error for user {username}: {e}', 'system')
            raise RemoteFault('Error authenticating user', cause=e) from e

        if employee is None:
            self.audit.log('AUTH', f'Authentication attempt for non-existent user: {username}', 'system')
            return Employee.unauthenticated(username)

        if not employee.authenticated:
            self.audit.log('AUTH', f'Failed authentication attempt for user: {username}', 'system')
            return Employee.unauthenticated(username)

        self.audit.log('AUTH', f'Successful authentication for user: {username}', 'system')
        employee.password = None
        return employee
