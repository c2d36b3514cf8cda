from app.musaib import create_app

app = create_app()
