import time

from .models import RequestMetric


def measure_response(client, prompt: str, iteration_index: int, debug: bool = False) -> RequestMetric:
    """Time one ``client.send_prompt`` call and record its outcome.

    Client failures are captured on the returned metric instead of raised, and
    the failed attempt is timed the same way as a successful one.
    """
    start_timestamp = time.time()
    start_ns = time.perf_counter_ns()
    try:
        response = client.send_prompt(prompt)
    except Exception as e:
        end_ns = time.perf_counter_ns()
        error_msg = str(e) if str(e) else type(e).__name__
        if debug:
            print(f"Request {iteration_index} failed: {error_msg}")
        return RequestMetric(
            iteration_index=iteration_index,
            prompt=prompt,
            succeeded=False,
            response_time_ms=(end_ns - start_ns) // 1_000_000,
            error_message=error_msg,
            start_timestamp=start_timestamp,
            end_timestamp=time.time()
        )

    end_ns = time.perf_counter_ns()
    return RequestMetric(
        iteration_index=iteration_index,
        prompt=prompt,
        succeeded=True,
        response_time_ms=(end_ns - start_ns) // 1_000_000,
        response=response,
        start_timestamp=start_timestamp,
        end_timestamp=time.time()
    )
