"""
AWS Lambda handler for the Payment Schedule Rules API.

This is the production entry point for AWS Lambda deployments.
For local development, use main.py (Flask app) instead.
"""

import json
import logging

from schedule_engine import ScheduleProcessor
from schedule_engine import config
from schedule_engine.errors import InvalidStateError, PermissionDeniedError

# Configure logging
logger = logging.getLogger()
logger.setLevel(config.LOG_LEVEL)

# Environment (dev, staging, prod)
ENVIRONMENT = config.ENVIRONMENT

# Initialize processor (reused across warm invocations)
processor = ScheduleProcessor()

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}

POST_ROUTES = {
    "/evaluate": processor.evaluate_from_dict,
    "/apply_action": processor.apply_from_dict,
    "/check_permission": processor.permissions_from_dict,
    "/summarize": processor.summarize_from_dict,
}


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events for:
    - GET /health
    - GET /api
    - POST /evaluate, /apply_action, /check_permission, /summarize
    - OPTIONS (CORS preflight)
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    # Route to appropriate handler
    if path == "/health" and http_method == "GET":
        return handle_health()
    elif path == "/api" and http_method == "GET":
        return handle_api_info()
    elif path in POST_ROUTES and http_method == "POST":
        return handle_rules_request(event, path)
    else:
        return _response(404, {"error": "Not found", "path": path})


def _response(status_code, body):
    return {"statusCode": status_code, "headers": CORS_HEADERS, "body": json.dumps(body)}


def handle_health():
    """Health check endpoint."""
    return _response(200, {"status": "healthy", "environment": ENVIRONMENT})


def handle_api_info():
    """API information endpoint."""
    return _response(
        200,
        {
            "status": "ok",
            "message": "Payment Schedule Rules API",
            "version": "1.0",
            "environment": ENVIRONMENT,
            "runtime": "AWS Lambda",
            "endpoints": {path: f"{path} [POST]" for path in POST_ROUTES} | {"health": "/health [GET]"},
        },
    )


def handle_rules_request(event, path):
    """Run one rules endpoint against the request body."""
    try:
        # Parse request body
        body = event.get("body", "")
        if isinstance(body, str):
            if not body:
                return _response(400, {"error": "No input data provided", "status": "failed"})
            # Handle base64 encoded body (API Gateway)
            if event.get("isBase64Encoded"):
                import base64

                body = base64.b64decode(body).decode("utf-8")
            input_data = json.loads(body)
        else:
            input_data = body

        logger.info(f"Handling {path}")
        result = POST_ROUTES[path](input_data)
        return _response(200, result)

    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {str(e)}")
        return _response(400, {"error": f"Invalid JSON: {str(e)}", "status": "failed"})

    except PermissionDeniedError as e:
        logger.warning(f"Permission denied: {e.message}")
        return _response(403, {"error": e.message, "status": "permission_denied"})

    except InvalidStateError as e:
        logger.warning(f"Invalid state: {e.message}")
        return _response(409, {"error": e.message, "status": "invalid_state"})

    except (ValueError, KeyError, TypeError) as e:
        # Validation errors from the engine (missing fields, invalid types, etc.)
        logger.error(f"Validation error: {str(e)}")
        return _response(400, {"error": f"Validation error: {str(e)}", "status": "validation_failed"})

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _response(500, {"error": "An unexpected error occurred during processing", "status": "failed"})
