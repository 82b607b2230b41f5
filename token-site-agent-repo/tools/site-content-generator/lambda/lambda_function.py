"""AWS Lambda handler shim.

Lets the function's handler setting be "lambda_function.lambda_handler" while
the request handling lives in handler.py.
"""

from handler import lambda_handler

__all__ = ["lambda_handler"]
