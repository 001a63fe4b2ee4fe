from flask import Flask, jsonify
app = Flask(__name__)

@app.get("/")
def hello():
    return jsonify(
        message="gitopsflow demo service",
        context="GitOps-managed Flask application",
        deployment="Deployed to Kubernetes by a reconciliation controller"
    )

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000)
