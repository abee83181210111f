"""Flask application exposing the Budgety services."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from flask import Flask, jsonify, redirect, render_template, request, url_for
from flask_cors import CORS
from flask_login import LoginManager, current_user, login_required

from budgety import summaries
from budgety.catalog import (
    CATEGORIES,
    FREQUENCY_LABELS,
    INCOME_SOURCE_COLORS,
    INCOME_SOURCES,
    PER_MONTH,
    SAVINGS_COLORS,
    SAVINGS_TYPES,
)
from budgety.exceptions import (
    AuthenticationError,
    EmailDeliveryError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from budgety.services import CategoryService, ExpenseService, QuickIncomeService, SavingsService
from budgety.storage import JSONStorage
from budgety.validators import validate_enum

from . import actions
from .actions import UNAUTHORIZED, ActionResult
from .auth import AuthService
from .auth import bp as auth_bp
from .config import build_config, load_environment
from .database import User, db
from .mailer import Mailer


def create_app(
    data_dir: Optional[Path] = None,
    config: Optional[Mapping[str, Any]] = None,
    mailer: Optional[Any] = None,
) -> Flask:
    app = Flask(__name__)
    if config is None:
        load_environment()
    app.config.from_mapping(build_config(config))

    env_name = app.config["BUDGETY_ENV"]
    if env_name in {"dev", "development"}:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    else:
        allowed_origins = app.config["BUDGETY_ALLOWED_ORIGINS"]
        if allowed_origins:
            origins = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
            CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)
        else:
            CORS(app)

    db.init_app(app)

    login_manager = LoginManager(app)
    login_manager.login_view = "login_page"

    @login_manager.user_loader
    def load_user(user_id: str) -> Optional[User]:
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        if request.path.startswith("/api/"):
            return _action(UNAUTHORIZED)
        return redirect(url_for("login_page", next=request.path))

    storage = JSONStorage(Path(data_dir or app.config["BUDGETY_DATA_DIR"]))
    if mailer is None:
        mailer = Mailer(
            api_key=app.config["MAILERSEND_API_KEY"],
            from_email=app.config["MAILERSEND_FROM_EMAIL"],
            from_name=app.config["MAILERSEND_FROM_NAME"],
        )
    app.extensions["budgety.auth"] = AuthService(
        mailer,
        base_url=app.config["BUDGETY_BASE_URL"],
        link_ttl=app.config["VERIFICATION_LINK_TTL"],
        otp_ttl=app.config["OTP_TTL"],
        allowed_attempts=app.config["OTP_ALLOWED_ATTEMPTS"],
    )
    app.register_blueprint(auth_bp)

    @app.cli.command("init-db")
    def init_db():
        """Create the database tables."""
        db.create_all()
        print("Database initialized.")

    def _user_storage() -> JSONStorage:
        return storage.for_user(current_user.id)

    def _session_user() -> Optional[User]:
        return current_user if current_user.is_authenticated else None

    def _success(payload: Any, status: int = 200):
        if status == 204:
            return ("", status)
        return jsonify(payload), status

    def _action(result: ActionResult):
        return jsonify(result.to_dict()), result.status

    def _handle_error(exc: Exception, status: int, message: str, **extra: Any):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "message": str(exc), "details": str(exc), **extra}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error", issues=exc.issues)

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    @app.errorhandler(AuthenticationError)
    def handle_authentication_error(exc: AuthenticationError):
        return _handle_error(exc, exc.status, "Unauthorized" if exc.status == 401 else "Authentication error")

    @app.errorhandler(EmailDeliveryError)
    def handle_email_error(exc: EmailDeliveryError):
        return _handle_error(exc, 502, "Email delivery error")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    # Income (database) ----------------------------------------------------
    @app.get("/api/income")
    def list_income():
        return _action(actions.get_income(_session_user()))

    @app.post("/api/income")
    def create_income():
        return _action(actions.submit_new_income(_session_user(), _json_body()))

    @app.put("/api/income/<income_id>")
    def update_income(income_id: str):
        return _action(actions.edit_income(_session_user(), _json_body(), income_id))

    @app.delete("/api/income/<income_id>")
    def delete_income(income_id: str):
        return _action(actions.delete_income(_session_user(), income_id))

    @app.get("/api/income/summary")
    @login_required
    def income_summary():
        items = actions.list_income_items(current_user)
        period = validate_enum(request.args.get("period", PER_MONTH), "period", FREQUENCY_LABELS)
        return _success({
            "totals": summaries.income_totals(items).to_dict(),
            "normalized": {
                "period": period,
                "amount": f"{summaries.normalized_income(items, period):.2f}",
            },
            "sources": [slice_.to_dict() for slice_ in summaries.income_by_source(items)],
            "equivalents": {item.id: summaries.equivalents(item) for item in items},
        })

    @app.get("/api/income/quick-add")
    @login_required
    def list_quick_income():
        items = QuickIncomeService(_user_storage()).list()
        return _success({"items": [item.to_dict() for item in items]})

    @app.put("/api/income/quick-add")
    @login_required
    def replace_quick_income():
        payload = _json_body()
        entries = payload.get("items")
        if not isinstance(entries, list) or not all(isinstance(entry, dict) for entry in entries):
            raise ValidationError("items must be a list of income entries", "items")
        items = QuickIncomeService(_user_storage()).replace(entries)
        return _success({"items": [item.to_dict() for item in items]})

    # Expenses -------------------------------------------------------------
    @app.get("/api/expenses")
    @login_required
    def list_expenses():
        service = ExpenseService(_user_storage())
        filters = {
            "search": request.args.get("search") or None,
            "category_id": request.args.get("category_id") or None,
        }
        applied = {key: value for key, value in filters.items() if value is not None}
        expenses = service.list(**applied)
        return _success({
            "items": [expense.to_dict() for expense in expenses],
            "total": f"{service.total(**applied):.2f}",
            "stats": summaries.expense_stats(expenses).to_dict(),
        })

    @app.post("/api/expenses")
    @login_required
    def create_expense():
        expense = ExpenseService(_user_storage()).add(_json_body())
        return _success(expense.to_dict(), 201)

    @app.get("/api/expenses/breakdown")
    @login_required
    def expense_breakdown():
        expenses = ExpenseService(_user_storage()).list()
        breakdown = summaries.category_breakdown(expenses)
        return _success({
            "items": [item.to_dict() for item in breakdown],
            "total": f"{summaries.sum_amounts(expense.amount for expense in expenses):.2f}",
            "active_categories": sum(1 for item in breakdown if item.total > 0),
            "user_categories": len(CategoryService(_user_storage()).list()),
        })

    @app.get("/api/expenses/<expense_id>")
    @login_required
    def get_expense(expense_id: str):
        return _success(ExpenseService(_user_storage()).get(expense_id).to_dict())

    @app.put("/api/expenses/<expense_id>")
    @login_required
    def update_expense(expense_id: str):
        expense = ExpenseService(_user_storage()).update(expense_id, _json_body())
        return _success(expense.to_dict())

    @app.delete("/api/expenses/<expense_id>")
    @login_required
    def delete_expense(expense_id: str):
        ExpenseService(_user_storage()).delete(expense_id)
        return _success({}, 204)

    # Savings --------------------------------------------------------------
    @app.get("/api/savings")
    @login_required
    def list_savings():
        service = SavingsService(_user_storage())
        items = service.list()
        return _success({
            "items": [
                {**item.to_dict(), "progress": f"{summaries.savings_progress(item.current_amount, item.goal_amount):.1f}"}
                for item in items
            ],
            "totals": service.totals().to_dict(),
        })

    @app.post("/api/savings")
    @login_required
    def create_savings():
        item = SavingsService(_user_storage()).add(_json_body())
        return _success(item.to_dict(), 201)

    @app.get("/api/savings/<savings_id>")
    @login_required
    def get_savings(savings_id: str):
        return _success(SavingsService(_user_storage()).get(savings_id).to_dict())

    @app.put("/api/savings/<savings_id>")
    @login_required
    def update_savings(savings_id: str):
        item = SavingsService(_user_storage()).update(savings_id, _json_body())
        return _success(item.to_dict())

    @app.delete("/api/savings/<savings_id>")
    @login_required
    def delete_savings(savings_id: str):
        SavingsService(_user_storage()).delete(savings_id)
        return _success({}, 204)

    # Categories -----------------------------------------------------------
    @app.get("/api/categories/catalog")
    def category_catalog():
        return _success({
            "categories": [category.to_dict() for category in CATEGORIES],
            "income_sources": INCOME_SOURCES,
            "frequencies": FREQUENCY_LABELS,
            "income_source_colors": INCOME_SOURCE_COLORS,
            "savings_types": SAVINGS_TYPES,
            "savings_colors": {
                kind: {"color": color, "background_color": background}
                for kind, (color, background) in SAVINGS_COLORS.items()
            },
        })

    @app.get("/api/categories")
    @login_required
    def list_categories():
        categories = CategoryService(_user_storage()).list()
        return _success({"items": [category.to_dict() for category in categories]})

    @app.post("/api/categories")
    @login_required
    def create_category():
        category = CategoryService(_user_storage()).add(_json_body())
        return _success(category.to_dict(), 201)

    @app.put("/api/categories/<category_id>")
    @login_required
    def update_category(category_id: str):
        category = CategoryService(_user_storage()).update(category_id, _json_body())
        return _success(category.to_dict())

    @app.delete("/api/categories/<category_id>")
    @login_required
    def delete_category(category_id: str):
        CategoryService(_user_storage()).delete(category_id)
        return _success({}, 204)

    # Account and dashboard --------------------------------------------------
    @app.get("/api/me")
    def me():
        user = _session_user()
        if user is None:
            return _action(UNAUTHORIZED)
        user_storage = _user_storage()
        return _action(
            actions.get_user_info(user, ExpenseService(user_storage), SavingsService(user_storage))
        )

    @app.get("/api/me/expenses")
    def my_expenses():
        user = _session_user()
        if user is None:
            return _action(UNAUTHORIZED)
        return _action(actions.get_expenses(user, ExpenseService(_user_storage())))

    def _dashboard() -> summaries.DashboardSummary:
        user_storage = _user_storage()
        incomes = actions.list_income_items(current_user) + QuickIncomeService(user_storage).list()
        return summaries.dashboard_summary(
            incomes,
            ExpenseService(user_storage).list(),
            SavingsService(user_storage).list(),
        )

    @app.get("/api/dashboard")
    @login_required
    def dashboard():
        return _success(_dashboard().to_dict())

    # Pages ----------------------------------------------------------------
    @app.get("/")
    @app.get("/dashboard")
    @login_required
    def dashboard_page():
        return render_template("dashboard.html", summary=_dashboard())

    @app.get("/income")
    @login_required
    def income_page():
        items = actions.list_income_items(current_user)
        return render_template(
            "income.html",
            items=items,
            totals=summaries.income_totals(items),
            labels=FREQUENCY_LABELS,
            sources=INCOME_SOURCES,
        )

    @app.get("/expenses")
    @login_required
    def expenses_page():
        expenses = ExpenseService(_user_storage()).list()
        return render_template(
            "expenses.html",
            expenses=expenses,
            stats=summaries.expense_stats(expenses),
            breakdown=summaries.category_breakdown(expenses),
        )

    @app.get("/savings")
    @login_required
    def savings_page():
        service = SavingsService(_user_storage())
        return render_template(
            "savings.html",
            items=service.list(),
            totals=service.totals(),
            progress=summaries.savings_progress,
            types=SAVINGS_TYPES,
        )

    @app.get("/login")
    def login_page():
        return render_template("login.html")

    @app.get("/signup")
    def signup_page():
        return render_template("signup.html")

    return app
