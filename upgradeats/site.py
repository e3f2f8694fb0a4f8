from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)
from pydantic import ValidationError

from .errors import GatewayError
from .models import Feature, Feedback, Product, TeamMember
from .orders import place_order, whatsapp_link

bp = Blueprint("site", __name__)

CATEGORIES = ["Semua", "Best Seller", "Segar Alami", "Dessert"]

TESTIMONIALS = [
    {
        "name": "Budi Santoso",
        "role": "Mahasiswa Teknik",
        "text": "Sumpah ini ngebantu banget buat anak kosan yg mager masak tapi pengen sehat!",
    },
    {
        "name": "Siti Aminah",
        "role": "Mahasiswa Ekonomi",
        "text": "Harganya pas di kantong, rasanya bintang lima. Langganan tiap hari!",
    },
]


def get_gateway():
    return current_app.extensions["upgradeats"]["gateway"]


def load_records(model, table: str):
    order_by, descending = model.order_by
    try:
        rows = get_gateway().query(table, order_by, descending)
        return [model.model_validate(row) for row in rows]
    except (GatewayError, ValidationError) as exc:
        current_app.logger.warning("Could not load %s: %s", table, exc)
        flash("Gagal memuat data. Coba lagi sebentar.", "error")
        return []


def filter_catalog(products, category: str, query: str):
    category = (category or "Semua").lower()
    query = (query or "").strip().lower()
    return [
        item
        for item in products
        if (category == "semua" or category in (item.category or "").lower())
        and query in item.name.lower()
    ]


@bp.route("/")
def home():
    category = request.args.get("category", "Semua")
    query = request.args.get("q", "")
    products = load_records(Product, "products")
    features = load_records(Feature, "features")
    return render_template(
        "index.html",
        products=filter_catalog(products, category, query),
        categories=CATEGORIES,
        active_category=category,
        query=query,
        features=features,
        testimonials=TESTIMONIALS,
    )


@bp.route("/feedback", methods=["POST"])
def send_feedback():
    message = request.form.get("message", "").strip()
    if not message:
        flash("Pesan tidak boleh kosong.", "error")
        return redirect(url_for("site.home"))
    try:
        get_gateway().insert("feedbacks", Feedback(message=message).to_row())
    except GatewayError as exc:
        current_app.logger.warning("Feedback insert failed: %s", exc.message)
        flash("Pesan gagal dikirim. Coba lagi.", "error")
        return redirect(url_for("site.home"))
    flash("Pesan terkirim! Terima kasih.", "success")
    return redirect(url_for("site.home"))


@bp.route("/about")
def about():
    team = load_records(TeamMember, "team_members")
    return render_template("about.html", team=team)


def get_product_or_404(product_id: int) -> Product:
    try:
        row = get_gateway().get("products", product_id)
    except GatewayError as exc:
        current_app.logger.warning("Product #%d lookup failed: %s", product_id, exc.message)
        abort(503)
    if not row:
        abort(404)
    return Product.model_validate(row)


@bp.route("/product/<int:product_id>")
def product_detail(product_id: int):
    product = get_product_or_404(product_id)
    return render_template("product.html", product=product)


@bp.route("/product/<int:product_id>/order", methods=["POST"])
def product_order(product_id: int):
    product = get_product_or_404(product_id)
    customer_name = request.form.get("customer_name", "").strip()
    try:
        qty = int(request.form.get("qty", "1"))
    except ValueError:
        qty = 0
    if not customer_name or qty < 1:
        flash("Nama pemesan dan jumlah (minimal 1) wajib diisi.", "error")
        return redirect(url_for("site.product_detail", product_id=product_id))
    try:
        order = place_order(get_gateway(), product, customer_name, qty)
    except GatewayError as exc:
        current_app.logger.warning("Order insert failed: %s", exc.message)
        flash("Pesanan gagal dibuat. Coba lagi.", "error")
        return redirect(url_for("site.product_detail", product_id=product_id))
    return redirect(whatsapp_link(current_app.config["WHATSAPP_NUMBER"], order))
