from django.apps import AppConfig


class PayrollConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'payroll'

    def ready(self):
        # Register the attendance/advance -> payroll recompute hooks
        from . import signals  # noqa: F401
