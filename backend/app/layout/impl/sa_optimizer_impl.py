"""
Simulated annealing optimizer for node placements.
"""
from typing import List, Dict, Tuple, Optional, Callable, Sequence, Any
from dataclasses import dataclass, field
import numpy as np
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SAParams:
    T0: float = 10.0  # initial temperature
    alpha: float = 0.95  # cooling rate per temperature step
    min_temp: float = 0.1
    moves_per_temperature: int = 10
    max_steps: int = 1000  # temperature steps
    step_fraction: float = 0.1  # fraction of min(canvas) moved at T=1
    energy_threshold: float = 0.1  # stop once best energy drops below this
    # Energy weights
    lambda_overlap: float = 2.0
    lambda_edge: float = 1.0
    lambda_crossing: float = 1.5
    lambda_balance: float = 0.5
    target_edge_length: float = 150.0
    # Per-node adaptive temperature
    node_temp_init: float = 1.0
    node_temp_min: float = 0.1
    node_temp_max: float = 2.0
    node_temp_cool: float = 0.95
    node_temp_heat: float = 1.05
    accept_rate_threshold: float = 0.5

    def validate(self) -> 'SAParams':
        if self.T0 <= 0 or self.min_temp <= 0:
            raise ValueError("temperatures must be > 0")
        if not 0.0 < self.alpha < 1.0:
            raise ValueError(f"alpha must be in (0, 1), got {self.alpha}")
        if self.moves_per_temperature < 1 or self.max_steps < 0:
            raise ValueError("moves_per_temperature must be >= 1 and max_steps >= 0")
        if not self.node_temp_min <= self.node_temp_init <= self.node_temp_max:
            raise ValueError("node_temp_init must lie within [node_temp_min, node_temp_max]")
        return self


@dataclass
class AnnealingResult:
    positions: Dict[str, Tuple[float, float]]
    initial_energy: float
    best_energy: float
    steps: int
    accepted_moves: int
    best_energy_history: List[float] = field(default_factory=list)

    def apply_to(self, nodes: Sequence[Any]) -> None:
        """Write the best positions back onto node objects."""
        for node in nodes:
            if node.id in self.positions:
                node.x, node.y = self.positions[node.id]


class EnergyModel:
    """Vectorized layout energy (lower is better).

    Combines:
    - squared overlap area for every node pair (separation included)
    - mean squared deviation of edge lengths from the target length
    - squared count of edge crossings between edges sharing no endpoint
    - squared normalized offset of the node centroid from the canvas center
    """
    def __init__(self, node_ids: List[str], sizes: np.ndarray, edges: Sequence[Any],
                 canvas_width: float, canvas_height: float,
                 params: SAParams, separation: float = 0.0):
        self.node_ids = node_ids
        self.sizes = np.asarray(sizes, dtype=float).reshape(-1, 2)
        self.canvas_width = canvas_width
        self.canvas_height = canvas_height
        self.params = params
        self.separation = separation

        n = len(node_ids)
        self.pair_i, self.pair_j = np.triu_indices(n, k=1)
        self.min_dx = (self.sizes[self.pair_i, 0] + self.sizes[self.pair_j, 0]) / 2.0 + separation
        self.min_dy = (self.sizes[self.pair_i, 1] + self.sizes[self.pair_j, 1]) / 2.0 + separation

        index = {nid: k for k, nid in enumerate(node_ids)}
        segs = [(index[e.source], index[e.target]) for e in edges
                if e.source in index and e.target in index]
        self.seg = np.asarray(segs, dtype=int).reshape(-1, 2)

        # Candidate crossing pairs: segments that share no endpoint
        m = len(self.seg)
        ei, ej = np.triu_indices(m, k=1)
        if m:
            a, b = self.seg[ei], self.seg[ej]
            disjoint = ((a[:, 0] != b[:, 0]) & (a[:, 0] != b[:, 1]) &
                        (a[:, 1] != b[:, 0]) & (a[:, 1] != b[:, 1]))
            ei, ej = ei[disjoint], ej[disjoint]
        self.cross_i, self.cross_j = ei, ej

    def overlap_energy(self, pos: np.ndarray) -> float:
        if self.pair_i.size == 0:
            return 0.0
        dx = np.abs(pos[self.pair_i, 0] - pos[self.pair_j, 0])
        dy = np.abs(pos[self.pair_i, 1] - pos[self.pair_j, 1])
        ox = np.clip(self.min_dx - dx, 0.0, None)
        oy = np.clip(self.min_dy - dy, 0.0, None)
        area = ox * oy
        return float(np.sum(area * area))

    def edge_energy(self, pos: np.ndarray) -> float:
        if len(self.seg) == 0:
            return 0.0
        d = pos[self.seg[:, 1]] - pos[self.seg[:, 0]]
        lengths = np.hypot(d[:, 0], d[:, 1])
        diff = lengths - self.params.target_edge_length
        return float(np.sum(diff * diff)) / len(self.seg)

    def crossing_count(self, pos: np.ndarray) -> int:
        if self.cross_i.size == 0:
            return 0
        a1 = pos[self.seg[self.cross_i, 0]]
        a2 = pos[self.seg[self.cross_i, 1]]
        b1 = pos[self.seg[self.cross_j, 0]]
        b2 = pos[self.seg[self.cross_j, 1]]

        def ccw(p, q, r):
            return (q[:, 0] - p[:, 0]) * (r[:, 1] - p[:, 1]) - (q[:, 1] - p[:, 1]) * (r[:, 0] - p[:, 0])

        crosses = (ccw(b1, b2, a1) * ccw(b1, b2, a2) < 0) & (ccw(a1, a2, b1) * ccw(a1, a2, b2) < 0)
        return int(np.count_nonzero(crosses))

    def balance_energy(self, pos: np.ndarray) -> float:
        if len(pos) == 0:
            return 0.0
        cx, cy = pos.mean(axis=0)
        ndx = (cx - self.canvas_width / 2.0) / max(1.0, self.canvas_width)
        ndy = (cy - self.canvas_height / 2.0) / max(1.0, self.canvas_height)
        return float((ndx * ndx + ndy * ndy) * 100.0)

    def __call__(self, pos: np.ndarray) -> float:
        p = self.params
        crossings = self.crossing_count(pos)
        return (p.lambda_overlap * self.overlap_energy(pos) +
                p.lambda_edge * self.edge_energy(pos) +
                p.lambda_crossing * crossings * crossings +
                p.lambda_balance * self.balance_energy(pos))


def _node_arrays(nodes: Sequence[Any]) -> Tuple[List[str], np.ndarray, np.ndarray]:
    unplaced = [n.id for n in nodes if n.x is None or n.y is None]
    if unplaced:
        raise ValueError(f"Annealing needs an initial placement, unplaced nodes: {unplaced}")
    ids = [n.id for n in nodes]
    pos = np.array([[n.x, n.y] for n in nodes], dtype=float).reshape(-1, 2)
    sizes = np.array([[n.width, n.height] for n in nodes], dtype=float).reshape(-1, 2)
    return ids, pos, sizes


def compute_energy(nodes: Sequence[Any], edges: Sequence[Any],
                   canvas_width: float, canvas_height: float,
                   params: Optional[SAParams] = None, separation: float = 0.0) -> float:
    """Energy of the current node placement."""
    params = params or SAParams()
    ids, pos, sizes = _node_arrays(nodes)
    model = EnergyModel(ids, sizes, edges, canvas_width, canvas_height, params, separation)
    return model(pos)


def _clamp_row(pos: np.ndarray, k: int, sizes: np.ndarray,
               canvas_width: float, canvas_height: float) -> None:
    half_w, half_h = sizes[k] / 2.0
    if sizes[k, 0] >= canvas_width:
        pos[k, 0] = canvas_width / 2.0
    else:
        pos[k, 0] = min(max(pos[k, 0], half_w), canvas_width - half_w)
    if sizes[k, 1] >= canvas_height:
        pos[k, 1] = canvas_height / 2.0
    else:
        pos[k, 1] = min(max(pos[k, 1], half_h), canvas_height - half_h)


def run_sa(nodes: Sequence[Any], edges: Sequence[Any],
           canvas_width: float, canvas_height: float,
           params: Optional[SAParams] = None,
           separation: float = 0.0,
           rng: Optional[np.random.Generator] = None,
           should_stop: Optional[Callable[[], bool]] = None) -> AnnealingResult:
    """Run simulated annealing over node centers.

    Args:
        nodes: Placed nodes (objects with id, x, y, width, height). Not mutated.
        edges: Edges (objects with source, target)
        canvas_width, canvas_height: Canvas used for clamping and balance
        params: Optional SA parameters
        separation: Gap counted as part of every node in the overlap term
        rng: Random generator; a fresh unseeded one is used when omitted
        should_stop: Polled once per temperature step, stops the walk when True

    Returns:
        AnnealingResult holding the best placement seen over the whole run
    """
    params = (params or SAParams()).validate()
    rng = rng if rng is not None else np.random.default_rng()

    ids, current, sizes = _node_arrays(nodes)
    n = len(ids)
    energy = EnergyModel(ids, sizes, edges, canvas_width, canvas_height, params, separation)

    current_energy = energy(current)
    initial_energy = current_energy
    best = current.copy()
    best_energy = current_energy
    history = [best_energy]

    if n == 0:
        return AnnealingResult({}, initial_energy, best_energy, 0, 0, history)

    node_temp = np.full(n, params.node_temp_init)
    base_delta = min(canvas_width, canvas_height) * params.step_fraction
    temperature = params.T0
    step = 0
    accepted_total = 0

    logger.debug(f"Starting SA optimization with initial energy: {current_energy:.2f}")

    while (temperature > params.min_temp and step < params.max_steps
           and best_energy >= params.energy_threshold):
        if should_stop is not None and should_stop():
            logger.debug(f"SA stopped by caller at step {step}")
            break

        proposed = np.zeros(n, dtype=int)
        accepted = np.zeros(n, dtype=int)

        for _ in range(params.moves_per_temperature):
            k = int(rng.integers(n))
            old = current[k].copy()
            max_delta = base_delta * temperature * node_temp[k]
            current[k] += rng.uniform(-1.0, 1.0, size=2) * max_delta
            _clamp_row(current, k, sizes, canvas_width, canvas_height)
            proposed[k] += 1

            candidate_energy = energy(current)
            delta_e = candidate_energy - current_energy
            if delta_e <= 0 or rng.random() < np.exp(-delta_e / temperature):
                current_energy = candidate_energy
                accepted[k] += 1
                accepted_total += 1
                if current_energy < best_energy:
                    best = current.copy()
                    best_energy = current_energy
                    logger.debug(f"New best energy: {best_energy:.2f}")
                    if best_energy < params.energy_threshold:
                        break
            else:
                current[k] = old

        # Per-node temperature follows each node's own acceptance rate
        touched = proposed > 0
        rates = np.divide(accepted, proposed, out=np.zeros(n), where=touched)
        factor = np.where(rates > params.accept_rate_threshold, params.node_temp_cool, params.node_temp_heat)
        node_temp[touched] = np.clip(node_temp[touched] * factor[touched],
                                     params.node_temp_min, params.node_temp_max)

        temperature *= params.alpha
        step += 1
        history.append(best_energy)

        if step % 100 == 0:
            logger.debug(f"Step {step}: T={temperature:.3f}, "
                         f"E={current_energy:.2f}, Best={best_energy:.2f}")

    logger.debug(f"SA optimization completed after {step} steps, best energy {best_energy:.2f}")

    positions = {nid: (float(best[k, 0]), float(best[k, 1])) for k, nid in enumerate(ids)}
    return AnnealingResult(
        positions=positions,
        initial_energy=float(initial_energy),
        best_energy=float(best_energy),
        steps=step,
        accepted_moves=accepted_total,
        best_energy_history=[float(e) for e in history],
    )
