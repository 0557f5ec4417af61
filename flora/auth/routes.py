from flask import request
from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity

from . import bp
from ..extensions import db
from ..model import User
from ..services.order_service import EMAIL_RE
from ..utils.api import ok, err


@bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()

    if not email or not EMAIL_RE.match(email):
        return err("Valid email required", 400)
    if not password or len(password) < 6:
        return err("Password required, min 6 chars", 400)
    if User.query.filter_by(email=email).first():
        return err("Email already registered", 409)

    user = User(email=email, password_hash=generate_password_hash(password), name=name or None)
    db.session.add(user)
    db.session.commit()

    token = create_access_token(identity=str(user.id))
    return ok("Account created successfully", {"user": user.as_dict(), "user_logged_in": True, "token": token}, 201)


@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return err("Email and password are required", 400)

    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, password):
        return err("Invalid email or password", 401)

    token = create_access_token(identity=str(user.id))
    return ok("You've logged in successfully", {"user": user.as_dict(), "user_logged_in": True, "token": token})


@bp.get("/me")
@jwt_required()
def me():
    user = db.session.get(User, int(get_jwt_identity()))
    if not user:
        return err("user not found", 404)
    return ok("OK", {"user": user.as_dict()})
