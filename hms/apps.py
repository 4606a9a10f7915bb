from django.apps import AppConfig


class HmsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'hms'
    verbose_name = 'Hospital management'
