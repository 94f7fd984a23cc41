# config.py
import os

# ======= Puzzle conventions =======
BORDER_CODE = int(os.getenv("EM_BORDER_CODE", "0"))

# ======= Solver engine =======
BACKEND       = os.getenv("EM_BACKEND", "cp-sat")     # cp-sat | pysat
PYSAT_SOLVER  = os.getenv("EM_PYSAT_SOLVER", "g4")    # any pysat.solvers name
WORKERS       = int(os.getenv("EM_WORKERS", "1"))
MAX_MEMORY_MB = int(os.getenv("EM_MAX_MEMORY_MB", "2048"))
RANDOM_SEED   = int(os.getenv("EM_RANDOM_SEED", "0"))

# ======= Timeboxes (seconds) =======
TIME_LIMIT = float(os.getenv("EM_TIME_LIMIT", "300"))

# Budgets tried in order by the retry policy when a solve is aborted on a
# timebox.  Proven-unsatisfiable puzzles are never retried.
TIME_BUDGETS = os.getenv("EM_TIME_BUDGETS", "60,300,900")

# Run the engine in a spawned child so a stuck or crashing solve can be killed.
ISOLATE = int(os.getenv("EM_ISOLATE", "1")) != 0

# ======= Encoding knobs =======
SYMMETRY     = os.getenv("EM_SYMMETRY", "auto")         # auto | off
EXCLUSIVITY  = os.getenv("EM_EXCLUSIVITY", "pairwise")  # pairwise | seqcounter
ADJACENCY    = os.getenv("EM_ADJACENCY", "pairwise")    # pairwise | seam

# ======= Enumeration / reporting =======
MAX_SOLUTIONS  = int(os.getenv("EM_MAX_SOLUTIONS", "1"))
STATS_INTERVAL = float(os.getenv("EM_STATS_INTERVAL", "5"))

# ======= Output names =======
SOLUTION_OUT = os.getenv("EM_SOLUTION_OUT", "solution.txt")
LAYOUT_HTML  = os.getenv("EM_LAYOUT_HTML", "layout_view.html")
DIMACS_OUT   = os.getenv("EM_DIMACS_OUT", "puzzle.cnf")


def parse_budgets(raw) -> list:
    """Turn ``"60,300,900"`` into ``[60.0, 300.0, 900.0]`` (bad tokens dropped)."""

    out = []
    for tok in str(raw or "").split(","):
        tok = tok.strip()
        if not tok:
            continue
        try:
            val = float(tok)
        except ValueError:
            continue
        if val > 0:
            out.append(val)
    return out


class CFG:
    BORDER_CODE = BORDER_CODE

    BACKEND       = BACKEND
    PYSAT_SOLVER  = PYSAT_SOLVER
    WORKERS       = WORKERS
    MAX_MEMORY_MB = MAX_MEMORY_MB
    RANDOM_SEED   = RANDOM_SEED

    TIME_LIMIT   = TIME_LIMIT
    TIME_BUDGETS = TIME_BUDGETS
    ISOLATE      = ISOLATE

    SYMMETRY    = SYMMETRY
    EXCLUSIVITY = EXCLUSIVITY
    ADJACENCY   = ADJACENCY

    MAX_SOLUTIONS  = MAX_SOLUTIONS
    STATS_INTERVAL = STATS_INTERVAL

    SOLUTION_OUT = SOLUTION_OUT
    LAYOUT_HTML  = LAYOUT_HTML
    DIMACS_OUT   = DIMACS_OUT


__all__ = ["CFG", "BORDER_CODE", "parse_budgets"]
