from sqldal.exceptions import (
    CommittingError,
    ConnectingError,
    DALError,
    ExecutingStatementError,
    ExtraParameterError,
    ImproperConfigurationError,
    InvalidQueryTypeError,
    MissingParameterError,
    ParameterError,
    PreparingStatementError,
    QueryNotFoundError,
    ResultShapeError,
    RunningQueryError,
    SQLFileNotFoundError,
    SQLFileParseError,
    UnsupportedPlaceholderError,
)


def test_exception_hierarchy():
    for error_type in (
        CommittingError,
        ConnectingError,
        ExecutingStatementError,
        ImproperConfigurationError,
        InvalidQueryTypeError,
        ParameterError,
        PreparingStatementError,
        QueryNotFoundError,
        ResultShapeError,
        RunningQueryError,
        SQLFileNotFoundError,
        SQLFileParseError,
    ):
        assert issubclass(error_type, DALError)

    assert issubclass(MissingParameterError, ParameterError)
    assert issubclass(ExtraParameterError, ParameterError)
    assert issubclass(UnsupportedPlaceholderError, ParameterError)


def test_messages():
    assert str(ConnectingError("h", "d", "refused")) == "Error connecting to db host: h, db name: d, error: refused"
    assert str(PreparingStatementError("q", "bad", "SELECT ?")) == (
        "Error preparing statement: q, error: bad, query: SELECT ?"
    )
    assert str(ExecutingStatementError("q", "bad")) == "Error executing statement: q, bad"
    assert str(RunningQueryError("SELECT 1", "bad")) == "Error running query: SELECT 1, bad"
    assert str(InvalidQueryTypeError("GRANT ")) == 'Queries must start with SELECT, UPDATE, DELETE or INSERT not "GRANT "'
    assert str(CommittingError("main", "bad")) == "Error committing transaction on cluster: main, bad"


def test_detail_and_repr():
    exc = DALError("something failed")

    assert exc.detail == "something failed"
    assert repr(exc) == "DALError - something failed"
    assert repr(DALError()) == "DALError"


def test_parameter_error_includes_sql():
    exc = MissingParameterError("Expected 2 parameters", "SELECT %d, %d")

    assert exc.sql == "SELECT %d, %d"
    assert str(exc) == "Expected 2 parameters\nSQL: SELECT %d, %d"


def test_exception_chaining():
    try:
        try:
            raise ValueError("Original error")
        except ValueError as e:
            raise RunningQueryError("SELECT 1", str(e)) from e
    except RunningQueryError as exc:
        assert exc.__cause__ is not None
        assert isinstance(exc.__cause__, ValueError)
        assert exc.query == "SELECT 1"
