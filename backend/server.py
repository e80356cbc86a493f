import logging
import os

from flask import Flask, request, jsonify, send_from_directory
from dotenv import load_dotenv
from flask_cors import CORS

from .compose_engine import ComposeError, EngineConfig, JobManager, job_request_from_payload
from .compose_engine.schemas import outcome_payload

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

app = Flask(__name__)

allowed_origins = ["http://localhost:3000", "https://localhost:3000"]
if os.environ.get("CORS_ORIGINS"):
    allowed_origins.extend(origin.strip() for origin in os.environ["CORS_ORIGINS"].split(",") if origin.strip())

CORS(
    app,
    origins=allowed_origins,
    allow_headers=["Content-Type", "Authorization"],
    methods=["GET", "POST", "OPTIONS"],
)

# The queue exists and is accepting work before the first request can arrive
job_manager = JobManager(EngineConfig.from_env())
job_manager.start()


@app.route("/ping", methods=["GET"])
def ping():
    logger.info("Ping received")
    return "Server is alive!", 200


@app.route("/generate-video", methods=["POST"])
def generate_video():
    """Validate, queue and wait for the job; answer with the Drive file once uploaded."""
    data = request.get_json(silent=True)
    req = job_request_from_payload(data)
    job, future = job_manager.submit(req)
    try:
        outcome = future.result()
        if outcome.succeeded:
            response = jsonify(outcome_payload(outcome)), 200
        else:
            err = outcome.error
            status = err.status_code if isinstance(err, ComposeError) else 500
            response = jsonify({"error": str(err)}), status
    finally:
        # the next queued job starts only once this response exists
        job_manager.finalize(job)
    return response


@app.route("/public/<path:filename>", methods=["GET"])
def get_public_file(filename):
    """Serve a rendered file. It only exists until its job cleans up."""
    return send_from_directory(os.path.abspath(job_manager.config.public_dir), filename)


@app.errorhandler(ComposeError)
def compose_error(e):
    logger.error(f"generate-video rejected: {e}")
    return jsonify({"error": str(e)}), e.status_code


@app.errorhandler(404)
def not_found(e):
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(500)
def internal_error(e):
    return jsonify({"error": "Internal server error"}), 500


if __name__ == "__main__":
    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 3000))
    debug = os.environ.get("DEBUG", "false").lower() in ("true", "1", "yes")

    logger.info(f"Server running on http://{host}:{port}")
    app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)
