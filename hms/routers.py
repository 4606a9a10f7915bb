"""
URL mappings for the MediCare API.

Endpoints are grouped by the single role that may call them.  Trailing
slashes are omitted (``APPEND_SLASH`` is off).
"""
from django.urls import path

from .auth_views import (
    change_password_view,
    forgot_password_view,
    login_view,
    logout_view,
    me_view,
    refresh_view,
    reset_password_view,
    validate_password_view,
)
from .views import doctor, hospital_admin, nurse, pharmacist, receptionist, super_admin
from .views.health import healthz

urlpatterns = [
    path('healthz', healthz, name='healthz'),

    # auth
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', refresh_view, name='refresh_view'),
    path('api/auth/logout', logout_view, name='logout_view'),
    path('api/auth/me', me_view, name='me_view'),
    path('api/auth/change-password', change_password_view, name='change_password_view'),
    path('api/auth/forgot-password', forgot_password_view, name='forgot_password_view'),
    path('api/auth/reset-password', reset_password_view, name='reset_password_view'),
    path('api/auth/validate-password', validate_password_view, name='validate_password_view'),

    # public hospital registration
    path('api/hospitals/send-otp', super_admin.send_hospital_otp, name='hospital_send_otp'),
    path('api/hospitals/register', super_admin.register_hospital, name='hospital_register'),

    # platform administration
    path('api/admin/hospitals', super_admin.hospitals_view, name='admin_hospitals'),
    path('api/admin/hospitals/stats', super_admin.hospital_stats, name='admin_hospital_stats'),
    path('api/admin/hospitals/<str:hospital_id>', super_admin.hospital_detail, name='admin_hospital_detail'),
    path('api/admin/hospitals/<str:hospital_id>/status', super_admin.hospital_status,
         name='admin_hospital_status'),
    path('api/admin/users', super_admin.platform_users, name='admin_users'),
    path('api/admin/dashboard', super_admin.platform_dashboard, name='admin_dashboard'),

    # hospital administration
    path('api/hospital/users', hospital_admin.users_view, name='hospital_users'),
    path('api/hospital/users/<int:pk>', hospital_admin.user_detail, name='hospital_user_detail'),
    path('api/hospital/users/<int:pk>/force-password-change', hospital_admin.force_password_change,
         name='force_password_change'),
    path('api/hospital/dashboard', hospital_admin.hospital_dashboard, name='hospital_dashboard'),

    # doctor
    path('api/doctor/patients', doctor.patients_view, name='doctor_patients'),
    path('api/doctor/patients/<int:pk>', doctor.patient_detail, name='doctor_patient_detail'),
    path('api/doctor/patients/<int:pk>/vitals', doctor.patient_vitals, name='doctor_patient_vitals'),
    path('api/doctor/patients/<int:pk>/prescriptions', doctor.patient_prescriptions,
         name='doctor_patient_prescriptions'),
    path('api/doctor/patients/<int:pk>/discharge', doctor.discharge_patient, name='doctor_discharge'),
    path('api/doctor/prescriptions', doctor.my_prescriptions, name='doctor_prescriptions'),
    path('api/doctor/dashboard', doctor.doctor_dashboard, name='doctor_dashboard'),

    # nurse
    path('api/nurse/patients', nurse.patients_view, name='nurse_patients'),
    path('api/nurse/patients/<int:pk>', nurse.patient_detail, name='nurse_patient_detail'),
    path('api/nurse/patients/<int:pk>/vitals', nurse.patient_vitals, name='nurse_patient_vitals'),
    path('api/nurse/patients/<int:pk>/care-notes', nurse.add_care_note, name='nurse_care_notes'),
    path('api/nurse/prescriptions', nurse.prescriptions_view, name='nurse_prescriptions'),
    path('api/nurse/prescriptions/<int:pk>', nurse.prescription_detail, name='nurse_prescription_detail'),
    path('api/nurse/dashboard', nurse.nurse_dashboard, name='nurse_dashboard'),

    # pharmacist
    path('api/pharmacist/prescriptions', pharmacist.prescriptions_view, name='pharmacist_prescriptions'),
    path('api/pharmacist/prescriptions/<int:pk>', pharmacist.prescription_detail,
         name='pharmacist_prescription_detail'),
    path('api/pharmacist/prescriptions/<int:pk>/dispense', pharmacist.dispense, name='pharmacist_dispense'),
    path('api/pharmacist/dashboard', pharmacist.pharmacist_dashboard, name='pharmacist_dashboard'),

    # receptionist
    path('api/receptionist/patients', receptionist.patients_view, name='receptionist_patients'),
    path('api/receptionist/patients/<int:pk>', receptionist.patient_detail, name='receptionist_patient_detail'),
    path('api/receptionist/dashboard', receptionist.receptionist_dashboard, name='receptionist_dashboard'),
]
