from fastapi import FastAPI
from .database import engine, Base
from . import models, main

# Initialize database models
Base.metadata.create_all(bind=engine)

app = FastAPI(title="USSD Loan Service")
app.include_router(main.router)
