# product_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")


# ten sam ksztalt co katalog produktow: ItemPrices per cennik, czasem tylko price jako tekst
PRODUCTS = {
    1: {
        "id": 1,
        "ItemName": "Keyboard",
        "ItemsGroupCode": 100,
        "ItemPrices": [{"PriceList": 1, "Price": 219.99}, {"PriceList": 2, "Price": 199.99}],
    },
    2: {
        "id": 2,
        "ItemName": "Mouse",
        "ItemsGroupCode": 100,
        "prices": [{"PriceList": 2, "Price": 49.50}],
    },
    3: {"id": 3, "ItemName": "Monitor", "ItemsGroupCode": 200, "price": "899.00 PLN"},
    4: {"id": 4, "ItemName": "Mouse pad", "ItemsGroupCode": 100, "price": 10},
}


@app.get("/products/{product_id}")
def get_product(product_id: int):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
