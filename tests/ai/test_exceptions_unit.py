from services.ai import exceptions


def test_exception_error_codes_and_messages():
    # Ensure each domain exception sets the correct error_code and message
    e = exceptions.ModelGatewayError()
    assert isinstance(e, exceptions.GenerationError)
    assert e.error_code == "model_error"
    assert "Model provider" in e.message

    e2 = exceptions.ReasoningFailure("no plan")
    assert e2.error_code == "reasoning_failed"
    assert e2.message == "no plan"
    assert str(e2).startswith("reasoning_failed:")

    e3 = exceptions.OrchestrationError()
    assert e3.error_code == "ORCHESTRATION_ERROR"

    e4 = exceptions.ContextOrchestrationError()
    assert e4.error_code == "CONTEXT_ORCHESTRATION_ERROR"
    assert isinstance(e4, Exception)
