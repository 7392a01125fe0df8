# backend/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from config import settings
from database import init_db

load_dotenv()

# Import routerów
from routes.auth import router as auth_router
from routes.cart import router as cart_router
from routes.products import router as products_router
from routes.shipping import router as shipping_router
from routes.orders import router as orders_router
from routes.payments import router as payments_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# Inicjalizacja
init_db()

app = FastAPI(title="Storefront API", version="1.0.0")

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rejestracja routerów
app.include_router(auth_router)
app.include_router(cart_router)
app.include_router(products_router)
app.include_router(shipping_router)
app.include_router(orders_router)
app.include_router(payments_router)

@app.get("/")
def read_root():
    return {"message": "Storefront API is running"}
