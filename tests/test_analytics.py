import unittest

from formpulse.analytics import compute_form_analytics
from formpulse.fields import ChoiceField, RatingField, TextField
from formpulse.schema import Form


class ComputeAnalyticsTests(unittest.TestCase):
    def setUp(self):
        self.form = Form(
            id="F1",
            title="Feedback",
            status="published",
            share_url="share",
            fields=[
                TextField(id="name", type="text", label="Name", order=0),
                TextField(id="age", type="number", label="Age", order=1),
                ChoiceField(id="plan", type="radio", label="Plan", options=["Free", "Pro"], order=2),
                ChoiceField(id="tags", type="checkbox", label="Tags", options=["a", "b"], order=3),
                RatingField(id="score", type="rating", label="Score", order=4),
            ],
        )
        self.responses = [
            {"responses": {"name": "Ada", "age": 30, "plan": "Pro", "tags": ["a", "b"], "score": 5}},
            {"responses": {"name": "Grace", "age": 40, "plan": "Pro", "tags": ["a"], "score": 3}},
            {"responses": {"name": "", "age": True, "plan": "Free", "tags": [], "score": 9}},
        ]

    def by_id(self, analytics):
        return {item["field_id"]: item for item in analytics["field_analytics"]}

    def test_summaries_per_field_type(self):
        analytics = compute_form_analytics(self.form, self.responses)
        self.assertEqual(analytics["form_id"], "F1")
        self.assertEqual(analytics["form_title"], "Feedback")
        self.assertEqual(analytics["total_responses"], 3)
        fields = self.by_id(analytics)

        self.assertEqual(fields["name"]["data"], {"average_length": 4.0, "response_count": 2})
        self.assertEqual(fields["name"]["response_count"], 2)
        self.assertEqual(
            fields["age"]["data"],
            {"average": 35.0, "min": 30.0, "max": 40.0, "response_count": 2},
        )
        self.assertEqual(fields["plan"]["data"]["distribution"], {"Pro": 2, "Free": 1})
        self.assertEqual(fields["tags"]["data"], {"distribution": {"a": 2, "b": 1}, "response_count": 2})
        self.assertEqual(fields["score"]["data"]["distribution"], {"5": 1, "3": 1})
        self.assertEqual(fields["score"]["data"]["average_rating"], 4.0)

    def test_no_responses(self):
        analytics = compute_form_analytics(self.form, [])
        fields = self.by_id(analytics)
        self.assertEqual(analytics["total_responses"], 0)
        self.assertEqual(fields["age"]["data"], {"average": 0, "min": 0, "max": 0, "response_count": 0})
        self.assertEqual(fields["score"]["data"]["average_rating"], 0)


if __name__ == "__main__":
    unittest.main()
