"""Django project package for the MediCare HMS backend."""
