# backend/wsgi.py
from kirana import create_app

app = create_app()
