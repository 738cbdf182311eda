from regrab.main import app

app()
