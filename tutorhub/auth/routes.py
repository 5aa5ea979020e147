from flask import jsonify, request
from flask_login import login_user, logout_user, login_required, current_user

from tutorhub import db
from tutorhub.auth import auth_bp
from tutorhub.auth.models import User
from tutorhub.auth.utils import is_valid_email, verify_password
from tutorhub.security.security_logger import SecurityLogger


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    remember = bool(data.get("remember", False))

    if not email or not password:
        return jsonify({"success": False, "error": "Email and password are required"}), 400

    if not is_valid_email(email):
        return jsonify({"success": False, "error": "Please provide a valid email address"}), 400

    user = db.session.query(User).filter_by(email=email).first()

    if not user or not verify_password(password, user.password_hash):
        SecurityLogger.log_failed_login(email)
        return jsonify({"success": False, "error": "Invalid email or password"}), 401

    if not user.is_active:
        SecurityLogger.log_failed_login(email, reason="Account disabled")
        return jsonify({"success": False, "error": "This account has been disabled"}), 403

    login_user(user, remember=remember)
    SecurityLogger.log_successful_login(user.id, user.email)

    return jsonify({"success": True, "user": user.to_dict()}), 200


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout_route():
    """Logout route."""
    SecurityLogger.log_logout(current_user.id)
    logout_user()
    return jsonify({"success": True, "message": "Logged out"}), 200


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    """Return the logged-in user, with the student or teacher profile id."""
    user = current_user.to_dict()
    profile = None
    if current_user.is_student():
        profile = getattr(current_user, "student_profile", None)
    elif current_user.is_teacher():
        profile = getattr(current_user, "teacher_profile", None)
    user["profile_id"] = profile.id if profile else None
    return jsonify({"success": True, "user": user}), 200
