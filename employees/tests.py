from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from core.exceptions import InvalidInputError

from .models import Employee
from .services import deactivate_employee, ensure_active, reactivate_employee, validate_compensation


class EmployeeServiceTests(TestCase):
    def setUp(self):
        self.employee = Employee.objects.create(
            employee_id='EMP-001',
            name='Ali Raza',
            department=Employee.DEPARTMENT_WORKSHOP,
            base_salary=Decimal('30000.00'),
            joining_date=date(2025, 1, 1),
        )

    def test_negative_compensation_is_rejected(self):
        with self.assertRaises(InvalidInputError):
            validate_compensation(Decimal('-1'))
        with self.assertRaises(InvalidInputError):
            validate_compensation(Decimal('100'), Decimal('-0.5'))
        validate_compensation(Decimal('0'), None)

    def test_deactivate_and_reactivate(self):
        deactivate_employee(self.employee, on_date=date(2025, 6, 30))
        self.employee.refresh_from_db()
        self.assertFalse(self.employee.is_active)
        self.assertEqual(self.employee.inactivation_date, date(2025, 6, 30))
        with self.assertRaises(InvalidInputError):
            ensure_active(self.employee, 'attendance')

        reactivate_employee(self.employee)
        self.employee.refresh_from_db()
        self.assertTrue(self.employee.is_active)
        self.assertIsNone(self.employee.inactivation_date)


class EmployeeApiTests(TestCase):
    def setUp(self):
        user = get_user_model().objects.create_user(username='hr', password='pass')
        self.client = APIClient()
        self.client.force_authenticate(user)

    def test_create_rejects_negative_salary(self):
        response = self.client.post(
            '/api/employees/',
            {
                'employee_id': 'EMP-002',
                'name': 'Sara Khan',
                'department': Employee.DEPARTMENT_COOKS,
                'base_salary': '-10.00',
                'joining_date': '2025-01-01',
            },
            format='json',
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Employee.objects.exists())

    def test_deactivate_returns_envelope(self):
        employee = Employee.objects.create(
            employee_id='EMP-003',
            name='Bilal Ahmed',
            department=Employee.DEPARTMENT_GUARDS,
            base_salary=Decimal('20000.00'),
            joining_date=date(2025, 1, 1),
        )
        response = self.client.post(f'/api/employees/{employee.pk}/deactivate/', {}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
        self.assertFalse(response.data['data']['is_active'])

    def test_delete_is_not_allowed(self):
        employee = Employee.objects.create(
            employee_id='EMP-004',
            name='Usman Tariq',
            department=Employee.DEPARTMENT_ENAMEL,
            base_salary=Decimal('20000.00'),
            joining_date=date(2025, 1, 1),
        )
        response = self.client.delete(f'/api/employees/{employee.pk}/')
        self.assertEqual(response.status_code, 405)
        self.assertTrue(Employee.objects.filter(pk=employee.pk).exists())
