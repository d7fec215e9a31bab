# backend/wsgi.py
from shipdesk import create_app

app = create_app()
