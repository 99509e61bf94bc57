from app.devicemgt import create_app

app = create_app()
