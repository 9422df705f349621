from .engine import (
    connected_rank,
    infer_graph_inputs,
    infer_graph_outputs,
    infer_node_strict,
    infer_standard_nodes,
    run_type_inference,
    select_signature,
)
