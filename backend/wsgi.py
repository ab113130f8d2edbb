# backend/wsgi.py
from zaadpos import create_app

app = create_app()
