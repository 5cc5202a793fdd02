"""Django project for the hospital room allocation service."""
