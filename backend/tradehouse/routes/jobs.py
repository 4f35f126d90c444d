# Overview: Flask API routes for listing and manually triggering scheduled jobs.

from flask import Blueprint, jsonify

from .. import jobs
from .errors import SERVICE_ERRORS, error_response, internal_error


jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/jobs")


@jobs_bp.get("")
def list_jobs_route():
    return jsonify({"jobs": jobs.list_jobs()})


@jobs_bp.post("/run/<job_name>")
def run_job_route(job_name: str):
    """Run a job now, e.g. after downtime across the scheduled time."""
    try:
        result = jobs.run_job(job_name)
        return jsonify({"job": job_name, "result": result})
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"run job {job_name}")
