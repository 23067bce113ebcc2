"""Product catalogue: add, restock and list products."""

from protean import handle
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.product.product import Product
from payments.reconciliation.guards import product_guard
from payments.utils.logging import get_logger

logger = get_logger(__name__)

DEMO_PRODUCTS = [
    {
        "name": "Laptop HP Pavilion 15",
        "description": "Laptop HP Pavilion 15 con procesador Intel Core i5, 8GB RAM, 512GB SSD",
        "price": 1899000,
        "stock": 15,
        "image_url": "https://images.example.com/products/hp-pavilion-15.jpg",
    },
    {
        "name": "Mouse Logitech MX Master 3",
        "description": "Mouse inalámbrico ergonómico con sensor de alta precisión",
        "price": 349000,
        "stock": 30,
        "image_url": "https://images.example.com/products/mx-master-3.jpg",
    },
    {
        "name": "Teclado Mecánico Keychron K2",
        "description": "Teclado mecánico inalámbrico compacto con switches Gateron",
        "price": 429000,
        "stock": 20,
        "image_url": "https://images.example.com/products/keychron-k2.jpg",
    },
    {
        "name": 'Monitor LG UltraWide 29"',
        "description": "Monitor IPS UltraWide Full HD de 29 pulgadas",
        "price": 899000,
        "stock": 10,
        "image_url": "https://images.example.com/products/lg-ultrawide-29.jpg",
    },
    {
        "name": "Webcam Logitech C920 HD Pro",
        "description": "Cámara web Full HD 1080p con micrófono estéreo",
        "price": 299000,
        "stock": 25,
        "image_url": "https://images.example.com/products/c920.jpg",
    },
]


@payments.command(part_of="Product")
class AddProduct:
    name: String(required=True, max_length=255)
    description: Text()
    price: Float(required=True, min_value=0.0)
    currency: String(max_length=3, default="COP")
    stock: Integer(default=0, min_value=0)
    image_url: String(max_length=500)


@payments.command_handler(part_of=Product)
class AddProductHandler:
    @handle(AddProduct)
    def add_product(self, command):
        product = Product.add(
            name=command.name,
            description=command.description,
            price=command.price,
            currency=command.currency,
            stock=command.stock,
            image_url=command.image_url,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)


@payments.command(part_of="Product")
class RestockProduct:
    product_id: Identifier(required=True)
    quantity: Integer(required=True)


@payments.command_handler(part_of=Product)
class RestockProductHandler:
    @handle(RestockProduct)
    def restock_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.increase_stock(command.quantity)
        repo.add(product)
        return product


def restock_product(product_id: str, quantity: int) -> Product:
    """Add ``quantity`` units back to stock.

    The command commits before the product guard is released, so it cannot
    interleave with a stock decrement for the same product.
    """
    with product_guard(product_id):
        product = current_domain.process(
            RestockProduct(product_id=product_id, quantity=quantity),
            asynchronous=False,
        )

    logger.info("product_restocked", product_id=str(product_id), quantity=quantity, stock=product.stock)
    return product


def list_products(limit: int = 100) -> list[Product]:
    """All products, alphabetically."""
    repo = current_domain.repository_for(Product)
    return repo._dao.query.order_by("name").limit(limit).all().items


def seed_products() -> list[str]:
    """Load the demo catalogue, skipping products that already exist by name."""
    repo = current_domain.repository_for(Product)
    existing = {p.name for p in repo._dao.query.limit(1000).all().items}

    created = []
    for data in DEMO_PRODUCTS:
        if data["name"] in existing:
            continue
        product_id = current_domain.process(AddProduct(**data), asynchronous=False)
        created.append(product_id)

    logger.info("products_seeded", created=len(created), skipped=len(DEMO_PRODUCTS) - len(created))
    return created
