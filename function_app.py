"""
Azure Durable Function wrapper around the data seeder.

POST /api/DataSeeder_v1 with a JSON body using the run parameter names
(target_type, source_type, path, database, ...) starts an orchestration that
runs the seed or export as a single activity.
"""

import azure.functions as func
import azure.durable_functions as df
import logging
import json
import asyncio

from dataseeder.runner import run_data_seeder

app = df.DFApp(http_auth_level=func.AuthLevel.ANONYMOUS)


@app.activity_trigger(input_name="params")
def data_seeder_activity(params: dict):
    """
    Activity trigger running the seeder.

    Args:
        params: Parameters dictionary passed through from the HTTP request

    Returns:
        Result dictionary from run_data_seeder()
    """
    return asyncio.run(run_data_seeder(params))


@app.orchestration_trigger(context_name="context")
def data_seeder_orchestrator(context: df.DurableOrchestrationContext):
    params = context.get_input()
    result = yield context.call_activity("data_seeder_activity", params)
    return result


@app.route(route="DataSeeder_v1", methods=["POST"])
@app.durable_client_input(client_name="client")
async def data_seeder_http_start(req: func.HttpRequest, client) -> func.HttpResponse:
    """
    HTTP trigger to start a seed or export run.

    Args:
        req: HTTP request
        client: Durable orchestration client

    Returns:
        Status-check response of the new orchestration
    """
    try:
        body = req.get_json()
    except ValueError as e:
        logging.error(f"Invalid JSON body: {str(e)}")
        return func.HttpResponse("Invalid JSON body", status_code=400)

    try:
        instance_id = await client.start_new("data_seeder_orchestrator", None, body)
        return client.create_check_status_response(req, instance_id)
    except Exception as e:
        logging.error(f"HTTP start failed: {str(e)}", exc_info=True)
        return func.HttpResponse(
            json.dumps({"error": str(e)}),
            mimetype="application/json",
            status_code=500
        )
