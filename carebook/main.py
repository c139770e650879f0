# uvicorn carebook.main:app
from carebook.api import create_app

app = create_app()
