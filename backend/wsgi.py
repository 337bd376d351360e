# backend/wsgi.py
from boxcount import create_app

app = create_app()
