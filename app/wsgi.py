from app.egw import create_app

app = create_app()
