# backend/wsgi.py
from tradehouse import create_app

app = create_app()
