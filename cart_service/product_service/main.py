# cart_service/product_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")


PRODUCTS = {
    "trad-001": {
        "id": "trad-001",
        "name": "Homemade Chakli",
        "description": "Crispy spiral-shaped snack made from rice flour, gram flour, and spices.",
        "price": 299,
        "stock_quantity": 25,
        "image_url": None,
    },
    "trad-002": {
        "id": "trad-002",
        "name": "Besan Ladoo",
        "description": "Roasted gram flour sweets with ghee and cardamom.",
        "price": 349,
        "stock_quantity": 10,
        "image_url": None,
    },
    "fresh-001": {
        "id": "fresh-001",
        "name": "Puran Poli",
        "description": "Sweet flatbread stuffed with jaggery and lentils, made to order.",
        "price": 450,
        "stock_quantity": 0,
        "image_url": None,
    },
}


@app.get("/products/{product_id}")
def get_product(product_id: str):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
