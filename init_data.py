from agrimart import create_app
from agrimart.extensions import db
from agrimart.models import (
    Crop,
    CropGuide,
    Keyword,
    LogisticsCarrier,
    Product,
    ProductStatus,
    ProductVariant,
    ScanPlant,
    User,
)
from agrimart.roles import Role
from agrimart.services.catalog_service import recompute_product_aggregates

app = create_app()

with app.app_context():
    # Staff accounts (if not exist)
    staff_data = [
        {"number": "9000000001", "name": "Master", "role": Role.MASTER},
        {"number": "9000000002", "name": "Green Agro", "role": Role.VENDOR},
        {"number": "9000000003", "name": "Support", "role": Role.SUPPORT},
    ]
    staff = {}
    for s in staff_data:
        user = User.query.filter_by(number=s["number"]).first()
        if not user:
            user = User(
                number=s["number"], full_name=s["name"], role=int(s["role"])
            )
            user.set_password("admin123")
            db.session.add(user)
            db.session.flush()
            print(f"Created {s['role'].name.lower()}: {s['number']} / admin123")
        staff[s["role"]] = user

    # Keyword vocabulary
    for name in [
        "seeds",
        "organic",
        "fertilizer",
        "fungicide",
        "pesticide",
        "irrigation",
    ]:
        if not Keyword.query.filter_by(name=name).first():
            db.session.add(Keyword(name=name))

    # Plants offered by the scanner
    for name, name_ta in [
        ("Tomato", "தக்காளி"),
        ("Brinjal", "கத்தரி"),
        ("Chilli", None),
    ]:
        if not ScanPlant.query.filter_by(name=name).first():
            db.session.add(ScanPlant(name=name, name_ta=name_ta))

    # Logistics carriers
    carriers_data = [
        {
            "name": "India Post",
            "tracking_url": (
                "https://www.indiapost.gov.in/track?consignment={tracking}"
            ),
        },
        {
            "name": "DTDC",
            "tracking_url": "https://www.dtdc.in/tracking.asp?awb=%s",
        },
    ]
    for c in carriers_data:
        if not LogisticsCarrier.query.filter_by(name=c["name"]).first():
            db.session.add(LogisticsCarrier(**c))

    # Crops with English and Tamil guides
    crops_data = [
        {
            "name": "Tomato",
            "name_ta": "தக்காளி",
            "guide": "Transplant 25 day old seedlings at 60 x 45 cm spacing.",
        },
        {
            "name": "Brinjal",
            "name_ta": "கத்தரி",
            "guide": "Raise seedlings in nursery beds; transplant after 30 days.",
        },
    ]
    for c in crops_data:
        crop = Crop.query.filter_by(name=c["name"]).first()
        if not crop:
            crop = Crop(name=c["name"], name_ta=c["name_ta"])
            db.session.add(crop)
            db.session.flush()
            db.session.add(CropGuide(
                crop_id=crop.id,
                language="en",
                cultivation_guide=c["guide"],
            ))
            print(f"Created crop: {c['name']}")

    # Sample catalog
    products_data = [
        {
            "name": "Organic Tomato Seeds",
            "plant_used": "Tomato",
            "keywords": "tomato, seeds, organic, planting, vegetables",
            "details": (
                "High-quality organic tomato seeds perfect for home "
                "gardening."
            ),
            "unit": "packet",
            "variants": [
                {"label": "10 g", "price": 299, "stock": 50},
                {"label": "50 g", "price": 1299, "stock": 20},
            ],
        },
        {
            "name": "Plant Disease Control Spray",
            "plant_used": "General",
            "keywords": "disease, spray, control, treatment, fungicide",
            "details": (
                "Treats common fungal infections and bacterial diseases."
            ),
            "unit": "bottle",
            "stock": 25,
            "price": 450,
        },
        {
            "name": "Rose Plant Fertilizer",
            "plant_used": "Rose",
            "keywords": "rose, fertilizer, nutrients, growth, flowering",
            "details": "Promotes healthy growth and beautiful blooms.",
            "unit": "kg",
            "variants": [
                {"label": "500 g", "price": 200, "stock": 40},
                {"label": "1 kg", "price": 350, "stock": 30},
            ],
        },
        {
            "name": "Plant Watering System",
            "plant_used": "General",
            "keywords": "watering, irrigation, system, automatic, drip",
            "details": "Automatic drip irrigation for efficient watering.",
            "unit": "set",
            "stock": 15,
            "price": 850,
        },
    ]

    vendor = staff[Role.VENDOR]
    for p in products_data:
        if Product.query.filter_by(name=p["name"]).first():
            continue
        product = Product(
            name=p["name"],
            plant_used=p["plant_used"],
            keywords=p["keywords"],
            details=p["details"],
            unit=p["unit"],
            seller_name=vendor.full_name,
            stock_available=p.get("stock", 0),
            cost_per_unit=p.get("price", 0),
            status=ProductStatus.APPROVED,
            created_by=vendor.id,
        )
        db.session.add(product)
        db.session.flush()

        for v in p.get("variants", []):
            db.session.add(ProductVariant(
                product_id=product.id,
                label=v["label"],
                price=v["price"],
                stock_available=v["stock"],
            ))
        if p.get("variants"):
            recompute_product_aggregates(product)

        print(f"  Created product: {p['name']}")

    db.session.commit()
    print("Data initialization completed!")
