"""
Solver adapter for the MIP/LP models built in this package.

Variables, linear expressions and constraints are collected in flat, index-based
arrays and handed to the solving engine at solve time: HiGHS through
scipy.optimize.milp by default, or Gurobi when requested and installed.
"""

import time
import numpy as np
from enum import Enum
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Union

from scipy import sparse
from scipy.optimize import milp, Bounds, LinearConstraint

try:
    import gurobipy as gp
    from gurobipy import GRB
    GUROBI_AVAILABLE = True
except ImportError:
    GUROBI_AVAILABLE = False


class SolverError(RuntimeError):
    """Raised when model construction or the solving engine fails."""


class InfeasibleModelError(SolverError):
    """Raised when a solved model reports that no feasible assignment exists."""

    def __init__(self, message: str, result: Optional["SolveResult"] = None):
        super().__init__(message)
        self.result = result


class ModelNotSolvedError(RuntimeError):
    """Raised when results are queried without a successful solve."""


class SolveStatus(Enum):
    OPTIMAL = "optimal"
    SUBOPTIMAL = "suboptimal"
    TIME_LIMIT = "time_limit"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    ERROR = "error"


@dataclass
class SolveResult:
    status: SolveStatus
    objective_value: Optional[float]
    runtime: float
    backend: str
    message: str = ""

    @property
    def has_solution(self) -> bool:
        return self.objective_value is not None

    @property
    def is_optimal(self) -> bool:
        return self.status == SolveStatus.OPTIMAL

    @property
    def is_infeasible(self) -> bool:
        return self.status == SolveStatus.INFEASIBLE


Number = Union[int, float]
Operand = Union["LinExpr", "Var", Number]


class Var:
    """Handle to a model variable; arithmetic on it produces LinExpr objects."""

    __slots__ = ("index", "name", "vtype")

    def __init__(self, index: int, name: str, vtype: str):
        self.index = index
        self.name = name
        self.vtype = vtype

    def __add__(self, other: Operand) -> "LinExpr":
        return LinExpr.coerce(self) + other

    def __radd__(self, other: Operand) -> "LinExpr":
        return LinExpr.coerce(self) + other

    def __sub__(self, other: Operand) -> "LinExpr":
        return LinExpr.coerce(self) - other

    def __rsub__(self, other: Operand) -> "LinExpr":
        return LinExpr.coerce(other) - self

    def __mul__(self, coefficient: Number) -> "LinExpr":
        return LinExpr().add_term(coefficient, self)

    def __rmul__(self, coefficient: Number) -> "LinExpr":
        return LinExpr().add_term(coefficient, self)

    def __neg__(self) -> "LinExpr":
        return LinExpr().add_term(-1.0, self)

    def __repr__(self) -> str:
        return f"Var({self.name or self.index})"


class LinExpr:
    """Sparse linear expression: sum of coefficient * variable plus a constant."""

    __slots__ = ("terms", "constant")

    def __init__(self, constant: Number = 0.0):
        self.terms: Dict[int, float] = {}
        self.constant = float(constant)

    @staticmethod
    def coerce(operand: Operand) -> "LinExpr":
        if isinstance(operand, LinExpr):
            return operand.copy()
        if isinstance(operand, Var):
            return LinExpr().add_term(1.0, operand)
        if isinstance(operand, (int, float, np.integer, np.floating)):
            return LinExpr(float(operand))
        raise TypeError(f"Cannot use {type(operand).__name__} in a linear expression")

    def add_term(self, coefficient: Number, var: Var) -> "LinExpr":
        self.terms[var.index] = self.terms.get(var.index, 0.0) + float(coefficient)
        return self

    def add_constant(self, value: Number) -> "LinExpr":
        self.constant += float(value)
        return self

    def add(self, other: Operand, multiplier: Number = 1.0) -> "LinExpr":
        other = other if isinstance(other, LinExpr) else LinExpr.coerce(other)
        for index, coefficient in other.terms.items():
            self.terms[index] = self.terms.get(index, 0.0) + multiplier * coefficient
        self.constant += multiplier * other.constant
        return self

    def copy(self) -> "LinExpr":
        expr = LinExpr(self.constant)
        expr.terms = dict(self.terms)
        return expr

    def __add__(self, other: Operand) -> "LinExpr":
        return self.copy().add(other)

    def __radd__(self, other: Operand) -> "LinExpr":
        return self.copy().add(other)

    def __sub__(self, other: Operand) -> "LinExpr":
        return self.copy().add(other, -1.0)

    def __rsub__(self, other: Operand) -> "LinExpr":
        return LinExpr.coerce(other).add(self, -1.0)

    def __mul__(self, coefficient: Number) -> "LinExpr":
        expr = LinExpr(self.constant * coefficient)
        expr.terms = {i: c * coefficient for i, c in self.terms.items()}
        return expr

    __rmul__ = __mul__

    def __neg__(self) -> "LinExpr":
        return self * -1.0

    def size(self) -> int:
        return len(self.terms)

    def __repr__(self) -> str:
        body = " + ".join(f"{c:g}*x{i}" for i, c in self.terms.items())
        return f"LinExpr({body or '0'} + {self.constant:g})"


class Constraint:
    __slots__ = ("index", "name", "sense")

    def __init__(self, index: int, name: str, sense: str):
        self.index = index
        self.name = name
        self.sense = sense

    def __repr__(self) -> str:
        return f"Constraint({self.name or self.index}, {self.sense})"


class Model:
    """
    MIP/LP model assembled incrementally and solved in one call.

    Model args:
        name: Model name (used in messages and by Gurobi)
        use_gurobi: Whether to use Gurobi (if installed) instead of HiGHS
        require_gurobi: If True, raise error if Gurobi is not available (disable HiGHS fallback)
        time_limit: Time limit in seconds for each solve
        mip_gap: Relative MIP gap tolerance
        verbose: Whether to print model sizes and solver output
    """

    # Tolerance used uniformly for thresholding boolean values of solved models
    EPSILON = 1e-6

    CONTINUOUS = "C"
    BINARY = "B"
    INTEGER = "I"

    LESS_EQUAL = "<="
    GREATER_EQUAL = ">="
    EQUAL = "=="

    MINIMIZE = 1
    MAXIMIZE = -1

    def __init__(
        self,
        name: str = "model",
        use_gurobi: bool = False,
        require_gurobi: bool = False,
        time_limit: Optional[float] = None,
        mip_gap: float = 1e-6,
        verbose: bool = False,
    ):
        self.name = name
        self.use_gurobi = use_gurobi and GUROBI_AVAILABLE
        if require_gurobi and not self.use_gurobi:
            raise SolverError(
                "Gurobi is required but not available. "
                "Install gurobipy or set require_gurobi=False to use the HiGHS backend."
            )
        if use_gurobi and not GUROBI_AVAILABLE:
            print("Warning: Gurobi not available, falling back to HiGHS")
        self.time_limit = time_limit
        self.mip_gap = mip_gap
        self.verbose = verbose

        self._vars: List[Var] = []
        self._lb: List[float] = []
        self._ub: List[float] = []

        self._rows: List[Dict[int, float]] = []
        self._rhs: List[float] = []
        self._constraints: List[Constraint] = []

        self._objective = LinExpr()
        self._objective_sense = Model.MINIMIZE

        self._solution: Optional[np.ndarray] = None
        self._result: Optional[SolveResult] = None

    @property
    def backend(self) -> str:
        return "gurobi" if self.use_gurobi else "highs"

    @property
    def num_vars(self) -> int:
        return len(self._vars)

    @property
    def num_integer_vars(self) -> int:
        return sum(1 for v in self._vars if v.vtype != Model.CONTINUOUS)

    @property
    def num_constraints(self) -> int:
        return len(self._constraints)

    # Variables

    def add_var(
        self,
        lb: float = 0.0,
        ub: float = np.inf,
        vtype: str = CONTINUOUS,
        name: str = "",
    ) -> Var:
        if vtype not in (Model.CONTINUOUS, Model.BINARY, Model.INTEGER):
            raise SolverError(f"Unknown variable type '{vtype}' for variable '{name}'")
        if vtype == Model.BINARY:
            lb, ub = 0.0, 1.0
        if np.isnan(lb) or np.isnan(ub) or lb > ub:
            raise SolverError(f"Variable '{name}' has invalid bounds [{lb}, {ub}]")

        var = Var(len(self._vars), name, vtype)
        self._vars.append(var)
        self._lb.append(float(lb))
        self._ub.append(float(ub))
        self._invalidate()
        return var

    def add_bool_var(self, name: str = "") -> Var:
        return self.add_var(vtype=Model.BINARY, name=name)

    def add_num_var(self, lb: float = 0.0, ub: float = np.inf, name: str = "") -> Var:
        return self.add_var(lb=lb, ub=ub, vtype=Model.CONTINUOUS, name=name)

    def add_vars(
        self,
        count: int,
        lb: float = 0.0,
        ub: float = np.inf,
        vtype: str = CONTINUOUS,
        names: Optional[Sequence[str]] = None,
    ) -> List[Var]:
        if names is not None and len(names) != count:
            raise SolverError(f"Expected {count} variable names, got {len(names)}")
        return [
            self.add_var(lb=lb, ub=ub, vtype=vtype, name=names[i] if names is not None else "")
            for i in range(count)
        ]

    def linear_expr(self, constant: Number = 0.0) -> LinExpr:
        return LinExpr(constant)

    # Constraints

    def add_constraint(self, lhs: Operand, sense: str, rhs: Operand, name: str = "") -> Constraint:
        """Register lhs <sense> rhs; variables are moved to the left and constants to the right."""
        if sense not in (Model.LESS_EQUAL, Model.GREATER_EQUAL, Model.EQUAL):
            raise SolverError(f"Unknown constraint sense '{sense}' for constraint '{name}'")
        expr = LinExpr.coerce(lhs).add(rhs, -1.0)
        for index in expr.terms:
            if not 0 <= index < len(self._vars):
                raise SolverError(f"Constraint '{name}' references unknown variable index {index}")

        constraint = Constraint(len(self._constraints), name, sense)
        self._rows.append({i: c for i, c in expr.terms.items() if c != 0.0})
        self._rhs.append(-expr.constant)
        self._constraints.append(constraint)
        self._invalidate()
        return constraint

    def add_le(self, lhs: Operand, rhs: Operand, name: str = "") -> Constraint:
        return self.add_constraint(lhs, Model.LESS_EQUAL, rhs, name)

    def add_ge(self, lhs: Operand, rhs: Operand, name: str = "") -> Constraint:
        return self.add_constraint(lhs, Model.GREATER_EQUAL, rhs, name)

    def add_eq(self, lhs: Operand, rhs: Operand, name: str = "") -> Constraint:
        return self.add_constraint(lhs, Model.EQUAL, rhs, name)

    def change_coefficient(self, constraint: Constraint, var: Var, coefficient: Number):
        """Set the coefficient of var in the (left-hand side of the) constraint"""
        row = self._rows[constraint.index]
        if coefficient == 0.0:
            row.pop(var.index, None)
        else:
            row[var.index] = float(coefficient)
        self._invalidate()

    def get_coefficient(self, constraint: Constraint, var: Var) -> float:
        return self._rows[constraint.index].get(var.index, 0.0)

    def get_rhs(self, constraint: Constraint) -> float:
        return self._rhs[constraint.index]

    # Objective

    def set_objective(self, expr: Operand, sense: int = MINIMIZE):
        if sense not in (Model.MINIMIZE, Model.MAXIMIZE):
            raise SolverError(f"Unknown objective sense {sense}")
        self._objective = LinExpr.coerce(expr)
        self._objective_sense = sense
        self._invalidate()

    def minimize(self, expr: Operand):
        self.set_objective(expr, Model.MINIMIZE)

    def maximize(self, expr: Operand):
        self.set_objective(expr, Model.MAXIMIZE)

    # Solving

    def _invalidate(self):
        self._solution = None
        self._result = None

    def _constraint_matrix(self) -> sparse.csr_matrix:
        data, indices, indptr = [], [], [0]
        for row in self._rows:
            for index, coefficient in sorted(row.items()):
                indices.append(index)
                data.append(coefficient)
            indptr.append(len(indices))
        return sparse.csr_matrix(
            (np.array(data, dtype=float), np.array(indices, dtype=np.int64), np.array(indptr, dtype=np.int64)),
            shape=(len(self._rows), len(self._vars)),
        )

    def _objective_vector(self) -> np.ndarray:
        c = np.zeros(len(self._vars))
        for index, coefficient in self._objective.terms.items():
            c[index] = coefficient
        return c

    def solve(self) -> SolveResult:
        """
        Solve the model. Infeasible and unbounded models are reported through the
        result status; failures of the solving engine raise SolverError.
        """
        if self.verbose:
            print(f"Solving '{self.name}' with {self.backend}: {self.num_vars} vars "
                  f"({self.num_integer_vars} integer), {self.num_constraints} constraints")

        start_time = time.time()
        try:
            if self.use_gurobi:
                status, solution, message = self._solve_gurobi()
            else:
                status, solution, message = self._solve_highs()
        except SolverError:
            raise
        except Exception as e:
            raise SolverError(f"{self.backend} failed on model '{self.name}': {e}") from e
        runtime = time.time() - start_time

        objective_value = None
        if solution is not None:
            objective_value = float(self._objective_vector() @ solution + self._objective.constant)

        self._solution = solution
        self._result = SolveResult(
            status=status,
            objective_value=objective_value,
            runtime=runtime,
            backend=self.backend,
            message=message,
        )

        if self.verbose:
            print(f"  status={status.value}, objective={objective_value}, time={runtime:.3f}s")

        return self._result

    def _solve_highs(self):
        n = len(self._vars)
        c = self._objective_vector() * self._objective_sense
        integrality = np.array([0 if v.vtype == Model.CONTINUOUS else 1 for v in self._vars])
        bounds = Bounds(np.array(self._lb), np.array(self._ub))

        constraints = None
        if self._rows:
            rhs = np.array(self._rhs)
            row_lb = np.full(len(rhs), -np.inf)
            row_ub = np.full(len(rhs), np.inf)
            for constraint in self._constraints:
                if constraint.sense != Model.LESS_EQUAL:
                    row_lb[constraint.index] = rhs[constraint.index]
                if constraint.sense != Model.GREATER_EQUAL:
                    row_ub[constraint.index] = rhs[constraint.index]
            constraints = LinearConstraint(self._constraint_matrix(), row_lb, row_ub)

        options = {"disp": self.verbose, "mip_rel_gap": self.mip_gap}
        if self.time_limit is not None:
            options["time_limit"] = self.time_limit

        result = milp(c, integrality=integrality, bounds=bounds, constraints=constraints, options=options)

        if result.status == 4 and result.x is None and n:
            # HiGHS may stop at "infeasible or unbounded"; a zero objective tells them apart
            probe = milp(np.zeros(n), integrality=integrality, bounds=bounds,
                         constraints=constraints, options=options)
            if probe.status == 2:
                return SolveStatus.INFEASIBLE, None, str(result.message)
            if probe.status == 0:
                return SolveStatus.UNBOUNDED, None, str(result.message)

        solution = None if result.x is None else np.asarray(result.x, dtype=float)
        if result.status == 0:
            status = SolveStatus.OPTIMAL
        elif result.status == 1:
            status = SolveStatus.SUBOPTIMAL if solution is not None else SolveStatus.TIME_LIMIT
        elif result.status == 2:
            status = SolveStatus.INFEASIBLE
        elif result.status == 3:
            status = SolveStatus.UNBOUNDED
        else:
            status = SolveStatus.ERROR
        if status in (SolveStatus.INFEASIBLE, SolveStatus.UNBOUNDED, SolveStatus.ERROR):
            solution = None
        return status, solution, str(result.message)

    def _solve_gurobi(self):
        n = len(self._vars)
        model = gp.Model(self.name)
        model.setParam('OutputFlag', 1 if self.verbose else 0)
        model.setParam('MIPGap', self.mip_gap)
        if self.time_limit is not None:
            model.setParam('TimeLimit', self.time_limit)

        vtype_map = {Model.CONTINUOUS: GRB.CONTINUOUS, Model.BINARY: GRB.BINARY, Model.INTEGER: GRB.INTEGER}
        lb = np.maximum(np.array(self._lb), -GRB.INFINITY)
        ub = np.minimum(np.array(self._ub), GRB.INFINITY)
        x = model.addMVar(n, lb=lb, ub=ub, vtype=np.array([vtype_map[v.vtype] for v in self._vars]), name="x")

        if self._rows:
            sense_map = {Model.LESS_EQUAL: GRB.LESS_EQUAL, Model.GREATER_EQUAL: GRB.GREATER_EQUAL,
                         Model.EQUAL: GRB.EQUAL}
            senses = np.array([sense_map[c.sense] for c in self._constraints])
            model.addMConstr(self._constraint_matrix(), x, senses, np.array(self._rhs))

        sense = GRB.MINIMIZE if self._objective_sense == Model.MINIMIZE else GRB.MAXIMIZE
        model.setObjective(self._objective_vector() @ x + self._objective.constant, sense)
        model.optimize()

        if model.Status == GRB.INF_OR_UNBD:
            model.setParam('DualReductions', 0)
            model.optimize()

        status_map = {
            GRB.OPTIMAL: SolveStatus.OPTIMAL,
            GRB.SUBOPTIMAL: SolveStatus.SUBOPTIMAL,
            GRB.TIME_LIMIT: SolveStatus.TIME_LIMIT,
            GRB.INFEASIBLE: SolveStatus.INFEASIBLE,
            GRB.UNBOUNDED: SolveStatus.UNBOUNDED,
        }
        status = status_map.get(model.Status, SolveStatus.ERROR)
        solution = None
        if status not in (SolveStatus.INFEASIBLE, SolveStatus.UNBOUNDED) and model.SolCount > 0:
            solution = np.asarray(x.X, dtype=float).copy()
            if status == SolveStatus.TIME_LIMIT:
                status = SolveStatus.SUBOPTIMAL
        return status, solution, f"Gurobi status {model.Status}"

    # Post-solve queries

    @property
    def result(self) -> Optional[SolveResult]:
        return self._result

    @property
    def has_solution(self) -> bool:
        return self._solution is not None

    def _require_solution(self) -> np.ndarray:
        if self._solution is None:
            raise ModelNotSolvedError(f"Model '{self.name}' has no solution; call solve() first")
        return self._solution

    def get_value(self, operand: Union[Var, LinExpr]) -> float:
        solution = self._require_solution()
        if isinstance(operand, Var):
            return float(solution[operand.index])
        if isinstance(operand, LinExpr):
            return float(sum(c * solution[i] for i, c in operand.terms.items()) + operand.constant)
        raise TypeError(f"Cannot evaluate {type(operand).__name__}")

    def get_values(self, variables: Iterable[Var]) -> np.ndarray:
        solution = self._require_solution()
        return np.array([solution[v.index] for v in variables], dtype=float)

    @property
    def objective_value(self) -> float:
        self._require_solution()
        return self._result.objective_value

    def is_true(self, var: Var) -> bool:
        """Threshold a solved boolean variable"""
        return self.get_value(var) > 1 - Model.EPSILON

    def __repr__(self) -> str:
        return (f"Model(name={self.name!r}, backend={self.backend}, vars={self.num_vars}, "
                f"constraints={self.num_constraints})")
