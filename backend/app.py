from flask import Flask, request, jsonify
from flask_cors import CORS
import vcompiler

app = Flask(__name__)
CORS(app)  # allow cross-origin requests

def line_result_to_dict(result):
    """
    Serialize a LineResult for the front-end
    """
    return {
        "lineno": result.lineno,
        "source": result.source,
        "status": result.status,
        "error": str(result.error) if result.error else None,
        "error_kind": result.error.kind if result.error else None,
        "failed_stage": result.failed_stage,
        "tokens": [{"type": t.type, "value": t.value} for t in result.tokens],
        "tac": [repr(t) for t in result.tac],
        "assembly": list(result.asm),
        "optimized_assembly": list(result.optimized_asm),
        "binary": list(result.binary),
    }

def _bad_request(msg):
    return jsonify({"lines": [], "errors": [msg]}), 400

@app.route("/compile", methods=["POST"])
def compile_code():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _bad_request("Request body must be a JSON object")

    lines = data.get("lines")
    code = data.get("code", "")
    if lines is not None:
        if not isinstance(lines, list) or not all(isinstance(l, str) for l in lines):
            return _bad_request("'lines' must be a list of strings")
    elif not isinstance(code, str):
        return _bad_request("'code' must be a string")

    try:
        # fresh session per request; temps restart at t1
        if lines is not None:
            results = vcompiler.compile_program(lines)
            errors = vcompiler.collect_errors(results)
        else:
            compiled = vcompiler.compile_source(code)
            results, errors = compiled['lines'], compiled['errors']

        return jsonify({
            "lines": [line_result_to_dict(r) for r in results],
            "errors": errors,
        })
    except Exception as e:
        app.logger.exception("compile request failed")
        return jsonify({
            "lines": [],
            "errors": [f"Unexpected error: {str(e)}"],
        }), 500

if __name__ == "__main__":
    app.run(debug=True)
