from flask import Flask, request, jsonify
from flask_cors import CORS
from schedule_engine import ScheduleProcessor
from schedule_engine import config
from schedule_engine.errors import InvalidStateError, PermissionDeniedError
import logging

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for all routes (the portals call the rules API from the browser)
CORS(app)

# Initialize the rules processor
processor = ScheduleProcessor()


@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "Payment Schedule Rules API",
        "version": "1.0",
        "endpoints": {
            "evaluate": "/evaluate [POST]",
            "apply_action": "/apply_action [POST]",
            "check_permission": "/check_permission [POST]",
            "summarize": "/summarize [POST]",
            "health": "/health [GET]"
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy"}), 200


def _run(handler, label):
    """Run a processor call and translate rule errors into HTTP statuses."""
    try:
        input_data = request.get_json(force=True, silent=True)

        if not input_data:
            return jsonify({
                "error": "No input data provided",
                "status": "failed"
            }), 400

        result = handler(input_data)
        logger.info(f"{label} handled successfully")
        return jsonify(result), 200

    except PermissionDeniedError as e:
        logger.warning(f"Permission denied: {e.message}")
        return jsonify({
            "error": e.message,
            "status": "permission_denied"
        }), 403

    except InvalidStateError as e:
        logger.warning(f"Invalid state: {e.message}")
        return jsonify({
            "error": e.message,
            "status": "invalid_state"
        }), 409

    except ValueError as e:
        # Validation errors from the engine
        logger.error(f"Validation error: {str(e)}")
        return jsonify({
            "error": str(e),
            "status": "validation_failed"
        }), 400

    except Exception as e:
        # Unexpected errors
        logger.error(f"Processing error: {str(e)}")
        return jsonify({
            "error": str(e),
            "status": "failed"
        }), 500


@app.route("/evaluate", methods=["POST"])
def evaluate():
    """Item view: allowed actions, overdue flag, projected occurrences"""
    return _run(processor.evaluate_from_dict, "evaluate")


@app.route("/apply_action", methods=["POST"])
def apply_action():
    """Run one lifecycle transition and return the resulting item"""
    return _run(processor.apply_from_dict, "apply_action")


@app.route("/check_permission", methods=["POST"])
def check_permission():
    """What the acting user may do to the target user"""
    return _run(processor.permissions_from_dict, "check_permission")


@app.route("/summarize", methods=["POST"])
def summarize():
    """Counts and totals for a list of items"""
    return _run(processor.summarize_from_dict, "summarize")


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=config.PORT, debug=False)
