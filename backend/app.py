from flask import Flask, Response, jsonify, request, send_from_directory, stream_with_context
from flask_cors import CORS
import os
import json
import logging
from datetime import date

from backend.gst_etl.config import Config
from backend.gst_etl.load import REPORT_TYPES, ReportLoader
from backend.gst_etl.pipeline import IngestionPipeline
from backend.gst_etl.state_codes import registry
from backend.supabase_client import MemoryStore, SupabaseStore

# Setup Logging
logging.basicConfig(
    filename=Config.LOG_FILE,
    level=logging.DEBUG,
    format='%(asctime)s %(levelname)s: %(message)s'
)
logging.info("Server starting up...")


app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")}})

# Folders
OUTPUT_FOLDER = os.path.abspath(Config.OUTPUT_FOLDER)
os.makedirs(OUTPUT_FOLDER, exist_ok=True)

API_BASE_URL = os.environ.get('API_BASE_URL', 'http://localhost:5000').rstrip('/')

# Initialize Pipeline, Store & Loader
pipeline = IngestionPipeline()
report_loader = ReportLoader()
store = SupabaseStore()
if not store.is_configured:
    logging.warning("Supabase not configured. Using in-memory store; data is lost on restart.")
    store = MemoryStore()


@app.route('/uploads', methods=['POST'])
def create_upload():
    if 'file' not in request.files:
        return jsonify({"error": "No file part"}), 400

    file = request.files['file']
    if file.filename == '':
        return jsonify({"error": "No selected file"}), 400

    platform = request.form.get('platform', 'Generic')
    user_id = request.form.get('user_id')
    seller_state_code = request.form.get('seller_state_code') or None
    file_ext = os.path.splitext(file.filename)[1].lower()

    # Read now; the request stream is closed once the generator runs
    file_bytes = file.read()

    upload_id = store.create_upload(user_id, file.filename, platform)
    if not upload_id:
        return jsonify({"status": "failed", "error": "Could not register upload"}), 500

    def generate():
        yield json.dumps({"p": 5, "status": "Initializing...", "upload_id": upload_id}) + "\n"

        final_result = None
        for p, msg, res in pipeline.process(upload_id, file_bytes, file_ext, platform, store, seller_state_code):
            if res:
                final_result = res
            else:
                yield json.dumps({"p": p, "status": msg}) + "\n"

        if not final_result or not final_result["success"]:
            error_msg = final_result.get("error", "Unknown ETL error") if final_result else "Pipeline failed"
            yield json.dumps({"status": "failed", "upload_id": upload_id, "error": error_msg}) + "\n"
            return

        yield json.dumps({
            "status": "success",
            "upload_id": upload_id,
            "platform": final_result["platform"],
            "total_rows": final_result["transaction_count"],
            "processing_time_ms": final_result["processing_time_ms"],
            "document_hash": final_result["document_hash"],
            "dq_summary": final_result["dq_report"].get("summary", {}),
            "preview": final_result["preview"],
        }) + "\n"

    return Response(stream_with_context(generate()), mimetype='application/x-ndjson')


@app.route('/uploads/<upload_id>', methods=['GET'])
def get_upload(upload_id):
    upload = store.get_upload(upload_id)
    if not upload:
        return jsonify({"error": "Upload not found"}), 404
    return jsonify(upload)


@app.route('/reports', methods=['POST'])
def create_report():
    data = request.get_json(silent=True) or {}
    upload_id = data.get('upload_id')
    report_type = data.get('report_type', 'gstr1_json')

    if not upload_id:
        return jsonify({"error": "upload_id required"}), 400
    if report_type not in REPORT_TYPES:
        return jsonify({"error": f"Unsupported report type: {report_type}"}), 400

    period = None
    if data.get('period'):
        try:
            year, month = str(data['period']).split('-')[:2]
            period = date(int(year), int(month), 1)
        except ValueError:
            return jsonify({"error": "period must be YYYY-MM"}), 400

    upload = store.get_upload(upload_id)
    if not upload:
        return jsonify({"error": "Upload not found"}), 404
    if upload.get("status") != "completed":
        return jsonify({"error": f"Upload is {upload.get('status')}"}), 409

    transactions = store.fetch_transactions(upload_id)
    report = report_loader.generate(transactions, report_type, period=period, name=upload_id[:8])

    with open(os.path.join(OUTPUT_FOLDER, report.file_name), 'wb') as f:
        f.write(report.content)

    return jsonify({
        "status": "success",
        "report_type": report_type,
        "file_name": report.file_name,
        "transaction_count": len(transactions),
        "download_url": f"{API_BASE_URL}/download/{report.file_name}",
    })


@app.route('/download/<filename>', methods=['GET'])
def download_file(filename):
    if not os.path.exists(os.path.join(OUTPUT_FOLDER, os.path.basename(filename))):
        return jsonify({"error": "File not found"}), 404
    return send_from_directory(OUTPUT_FOLDER, os.path.basename(filename), as_attachment=True)


@app.route('/states', methods=['GET'])
def list_states():
    return jsonify(registry.options())


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG', 'False') == 'True')
