# backend/wsgi.py
from voyapos import create_app

app = create_app()
