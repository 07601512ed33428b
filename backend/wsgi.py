# backend/wsgi.py
# FLASK_APP entry point: `flask --app wsgi run`, or `gunicorn wsgi:app` in production.
from onestop import create_app

app = create_app()
