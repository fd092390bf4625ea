from .employee_dao import EmployeeDAO

__all__ = ['EmployeeDAO']
