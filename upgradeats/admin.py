from functools import wraps

from flask import (
    Blueprint,
    abort,
    current_app,
    g,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from .dashboard import SessionGuard
from .errors import AuthError, GatewayError
from .listing import TABS
from .models import MODELS, FeatureIcon
from .mutations import EDITABLE_TABLES
from .orders import allowed_actions

bp = Blueprint("admin", __name__, url_prefix="/admin")

BAD_CREDENTIALS = "Email atau password salah."
CONNECTION_PROBLEM = "Terjadi kesalahan koneksi."


def get_gateway():
    return current_app.extensions["upgradeats"]["gateway"]


def get_registry():
    return current_app.extensions["upgradeats"]["dashboards"]


def remember_tokens(auth_session):
    if session.get("access_token") != auth_session.access_token:
        session["access_token"] = auth_session.access_token
        session["refresh_token"] = auth_session.refresh_token


def admin_required(view):
    @wraps(view)
    def wrapped_view(**kwargs):
        dashboard = get_registry().get(session.get("mount_id"))
        if dashboard is None:
            guard = SessionGuard(get_gateway(), timeout=current_app.config["GATEWAY_TIMEOUT"])
            dashboard = guard.mount(session.get("access_token"), session.get("refresh_token"))
            if dashboard is None:
                session.clear()
                return redirect(url_for("admin.login"))
            session["mount_id"] = get_registry().add(dashboard)
        g.dashboard = dashboard
        response = view(**kwargs)
        # Tokens rotated by the auth service must outlive this mount.
        remember_tokens(dashboard.auth_session)
        return response

    return wrapped_view


def back_to_dashboard():
    return redirect(url_for("admin.dashboard"))


@bp.route("/login", methods=["GET", "POST"])
def login():
    if get_registry().get(session.get("mount_id")):
        return back_to_dashboard()
    error = None
    email = ""
    if request.method == "POST":
        email = request.form.get("email", "").strip().lower()
        password = request.form.get("password", "")
        try:
            auth_session = get_gateway().sign_in(email, password)
        except AuthError as exc:
            current_app.logger.info("Login failed for %s: %s", email, exc.message)
            error = BAD_CREDENTIALS if exc.bad_credentials else CONNECTION_PROBLEM
        else:
            session.clear()
            session["access_token"] = auth_session.access_token
            session["refresh_token"] = auth_session.refresh_token
            return back_to_dashboard()
    return render_template("admin/login.html", error=error, email=email)


@bp.route("/logout")
def logout():
    get_registry().discard(session.get("mount_id"))
    try:
        get_gateway().sign_out(session.get("access_token"), session.get("refresh_token"))
    except GatewayError as exc:
        current_app.logger.warning("Sign out failed: %s", exc.message)
    session.clear()
    return redirect(url_for("admin.login"))


@bp.route("/dashboard")
@admin_required
def dashboard():
    dashboard = g.dashboard
    list_view = dashboard.list_view
    records = dashboard.records()
    return render_template(
        "admin/dashboard.html",
        dashboard=dashboard,
        tabs=TABS,
        stats=dashboard.store.stats,
        rows=dashboard.visible(),
        total=len(list_view.filtered(records)),
        page_count=list_view.page_count(records),
        has_next=list_view.has_next(records),
        recent_orders=dashboard.store.snapshot.orders[:5],
        form=dashboard.mutations.form,
        pending=dashboard.mutations.pending,
        detail=dashboard.orders.detail,
        allowed_actions=allowed_actions,
        icons=list(FeatureIcon),
        toast=dashboard.notifier.current(),
    )


@bp.route("/dashboard/tab/<string:tab>")
@admin_required
def switch_tab(tab: str):
    if tab not in TABS:
        abort(404)
    g.dashboard.switch_tab(tab)
    return back_to_dashboard()


@bp.route("/dashboard/search")
@admin_required
def search():
    g.dashboard.list_view.search(request.args.get("q", ""))
    return back_to_dashboard()


@bp.route("/dashboard/page/<string:direction>")
@admin_required
def paginate(direction: str):
    list_view = g.dashboard.list_view
    if direction == "prev":
        list_view.prev_page()
    elif direction == "next":
        list_view.next_page(g.dashboard.records())
    else:
        abort(404)
    return back_to_dashboard()


@bp.route("/dashboard/select/<int:record_id>", methods=["POST"])
@admin_required
def toggle_select(record_id: int):
    g.dashboard.list_view.toggle(record_id)
    return back_to_dashboard()


@bp.route("/dashboard/refresh", methods=["POST"])
@admin_required
def refresh():
    g.dashboard.store.refresh()
    return back_to_dashboard()


@bp.route("/dashboard/form/<string:table>")
@admin_required
def open_form(table: str):
    if table not in EDITABLE_TABLES:
        abort(404)
    record = None
    record_id = request.args.get("id", type=int)
    if record_id is not None:
        record = g.dashboard.store.snapshot.find(table, record_id)
        if record is None:
            abort(404)
    g.dashboard.mutations.open_form(table, record)
    return back_to_dashboard()


@bp.route("/dashboard/form/close", methods=["POST"])
@admin_required
def close_form():
    g.dashboard.mutations.close_form()
    return back_to_dashboard()


@bp.route("/dashboard/submit/<string:table>", methods=["POST"])
@admin_required
def submit(table: str):
    if table not in EDITABLE_TABLES:
        abort(404)
    g.dashboard.mutations.submit(table, request.form.to_dict())
    return back_to_dashboard()


@bp.route("/dashboard/delete/<string:table>/<int:record_id>", methods=["POST"])
@admin_required
def delete(table: str, record_id: int):
    if table not in MODELS:
        abort(404)
    g.dashboard.mutations.request_delete(table, record_id)
    return back_to_dashboard()


@bp.route("/dashboard/bulk-delete", methods=["POST"])
@admin_required
def bulk_delete():
    table = g.dashboard.list_view.table
    if table:
        g.dashboard.mutations.request_bulk_delete(table)
    return back_to_dashboard()


@bp.route("/dashboard/confirm", methods=["POST"])
@admin_required
def confirm():
    g.dashboard.mutations.confirm()
    return back_to_dashboard()


@bp.route("/dashboard/cancel", methods=["POST"])
@admin_required
def cancel():
    g.dashboard.mutations.cancel()
    return back_to_dashboard()


@bp.route("/dashboard/orders/<int:order_id>")
@admin_required
def order_detail(order_id: int):
    if g.dashboard.orders.open_detail(order_id) is None:
        abort(404)
    return back_to_dashboard()


@bp.route("/dashboard/orders/close", methods=["POST"])
@admin_required
def close_order_detail():
    g.dashboard.orders.close_detail()
    return back_to_dashboard()


@bp.route("/dashboard/orders/<int:order_id>/<string:action>", methods=["POST"])
@admin_required
def order_action(order_id: int, action: str):
    if action not in ("accept", "reject"):
        abort(404)
    g.dashboard.orders.apply(order_id, action)
    return back_to_dashboard()
