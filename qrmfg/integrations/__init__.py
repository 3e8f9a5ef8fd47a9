"""qrmfg.integrations — outbound gateways.

All calls to systems outside this service go through a gateway in this
package, never via bare `requests` calls in services or blueprints:

  http_client.JsonHttpClient     retrying JSON client shared by HTTP gateways
  cqs_gateway.CqsProvider        CQS hazard attributes per material
  workflow_gateway.WorkflowGateway  material extension workflow lookup/advance
"""
