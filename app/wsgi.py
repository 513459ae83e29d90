from app.genius import create_app

app = create_app()
