from flask import jsonify

from controllers.license_controller import LicenseController, load_request_organization
from controllers.payment_controller import PaymentController
from db.database import test_connection
from db.licensing.errors import UpgradeRequiredError


def init_routes(app):
    """Initialize all Flask routes"""

    license_controller = LicenseController()
    payment_controller = PaymentController()

    @app.before_request
    def attach_organization():
        load_request_organization()

    @app.errorhandler(UpgradeRequiredError)
    def handle_upgrade_required(error):
        # Upgrade prompt payload, not a generic 403
        return jsonify(error.to_dict()), 403

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({
            "status": "healthy",
            "service": "opendesk-licensing",
            "database": test_connection()
        })

    # ===== LICENSE ADMIN =====

    @app.route("/api/admin/license-status", methods=["GET"])
    def api_license_status():
        body, status = license_controller.license_status()
        return jsonify(body), status

    @app.route("/api/admin/license-check", methods=["POST"])
    def api_license_check():
        body, status = license_controller.license_check()
        return jsonify(body), status

    @app.route("/api/admin/activate-license", methods=["POST"])
    def api_activate_license():
        body, status = license_controller.activate_license()
        return jsonify(body), status

    # ===== FEATURE ACCESS =====

    @app.route("/api/features", methods=["GET"])
    def api_features():
        body, status = license_controller.feature_access()
        return jsonify(body), status

    @app.route("/api/features/<feature_name>", methods=["GET"])
    def api_feature_check(feature_name):
        body, status = license_controller.feature_check(feature_name)
        return jsonify(body), status

    # ===== PAYMENT =====

    @app.route("/api/payment/status", methods=["GET"])
    def api_payment_status():
        body, status = payment_controller.payment_status()
        return jsonify(body), status

    @app.route("/api/payment/admin/approve-upgrade", methods=["POST"])
    def api_approve_upgrade():
        body, status = payment_controller.approve_upgrade()
        return jsonify(body), status
