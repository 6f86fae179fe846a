"""Warning categories emitted while recovering model data."""


class ModelDataWarning(UserWarning):
    """The data used to fit a model could not be (fully) recovered."""


class GuessedDataWarning(ModelDataWarning):
    """Data was recovered by scanning a namespace for a matching table.

    The result is a best guess and may not be the table the model was fitted on.
    """
