DEFAULT_N_STATES = 10
DEFAULT_N_COMPONENTS = 1
DEFAULT_COVARIANCE_OFFSET = 1e-3
DEFAULT_ESTIMATE_MEANS = True
DEFAULT_TRANSITION_MODE = "left-right"

# exit mass of the last state of a hierarchical model, all other states have none
DEFAULT_EXIT_PROBABILITY_LAST_STATE = 0.1

DEFAULT_LIKELIHOOD_WINDOW = 5

DEFAULT_EM_MIN_STEPS = 10
DEFAULT_EM_MAX_STEPS = 0
DEFAULT_EM_PERCENT_CHANGE = 0.01
EM_HARD_MAX_STEPS = 1000

# replaces non-finite backward variables
BACKWARD_SENTINEL = 1e100
