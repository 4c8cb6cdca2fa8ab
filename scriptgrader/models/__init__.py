# 所有表都要在 create_all 之前注册到 Base.metadata
from scriptgrader.models.user import User  # noqa
from scriptgrader.models.assessment import Assessment  # noqa
from scriptgrader.models.submission import Submission  # noqa
