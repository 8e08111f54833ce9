# 体测数据提交服务测试
import pytest

from fitness_engine.exceptions import UnknownScopeError
from fitness_engine.services.evaluation_service import EvaluationService

from conftest import InMemoryMeasurementSource, make_record


class TestSubmitMeasurement:
    """测试单条提交"""

    @pytest.fixture(autouse=True)
    def setup(self, engine, roster):
        self.source = InMemoryMeasurementSource()
        self.service = EvaluationService(engine, self.source, roster)

    def test_submit_new_record(self):
        """测试提交新记录并写入综合得分"""
        result = self.service.submit_measurement(1, 2024, {"sit_up": 85})

        assert result.record_id is not None
        assert result.composite_total == 84.5

        stored = self.source.get_measurement(1, 2024)
        assert stored.values == {"sit_up": 85}
        assert stored.composite_total == 84.5
        assert (stored.class_id, stored.grade_id, stored.gender) == (1, 3, "1")

    def test_merge_with_existing_record(self):
        """测试再次提交时与已有数据合并"""
        first = self.service.submit_measurement(1, 2024, {"sit_up": 85})
        second = self.service.submit_measurement(1, 2024, {"fifty_run": 8.2})

        assert second.record_id == first.record_id
        assert set(second.item_scores) == {"sit_up", "fifty_run"}
        assert second.composite_total == pytest.approx(84.95)
        assert len(self.source.records) == 1

    def test_invalid_values_not_stored(self):
        """测试无效数值不保存"""
        result = self.service.submit_measurement(1, 2024, {"sit_up": 500, "fifty_run": 8.2})

        assert [error.item for error in result.errors] == ["sit_up"]
        assert self.source.get_measurement(1, 2024).values == {"fifty_run": 8.2}

    def test_invalid_resubmission_keeps_stored_value(self):
        """测试再次提交无效数值时保留已保存的有效数值"""
        first = self.service.submit_measurement(1, 2024, {"sit_up": 85})
        second = self.service.submit_measurement(1, 2024, {"sit_up": 500})

        assert [error.item for error in second.errors] == ["sit_up"]
        assert second.errors[0].kind == "invalid_measurement"
        assert second.composite_total == first.composite_total == 84.5
        assert second.item_scores["sit_up"].raw_value == 85

        stored = self.source.get_measurement(1, 2024)
        assert stored.values == {"sit_up": 85}
        assert stored.composite_total == 84.5

    def test_invalid_resubmission_with_other_items(self):
        """测试无效项目被拒绝时其余项目照常更新"""
        self.service.submit_measurement(1, 2024, {"sit_up": 85})
        result = self.service.submit_measurement(1, 2024, {"sit_up": "abc", "fifty_run": 8.2})

        assert [error.item for error in result.errors] == ["sit_up"]
        assert result.composite_total == pytest.approx(84.95)
        assert self.source.get_measurement(1, 2024).values == {"sit_up": 85, "fifty_run": 8.2}

    def test_empty_value_clears_item(self):
        """测试提交空值清除该项目"""
        self.service.submit_measurement(1, 2024, {"sit_up": 85, "fifty_run": 8.2})
        result = self.service.submit_measurement(1, 2024, {"fifty_run": None})

        assert result.composite_total == 84.5
        assert self.source.get_measurement(1, 2024).values == {"sit_up": 85}

    def test_unknown_student(self):
        """测试学生不存在"""
        with pytest.raises(UnknownScopeError):
            self.service.submit_measurement(999, 2024, {"sit_up": 85})
        assert self.source.records == {}

    def test_evaluate_does_not_write(self):
        """测试evaluate只计算不写入"""
        result = self.service.evaluate(make_record(None, 1, values={"sit_up": 85}))
        assert result.composite_total == 84.5
        assert self.source.records == {}


class TestSubmitBatch:
    """测试批量提交"""

    @pytest.fixture(autouse=True)
    def setup(self, engine, roster):
        self.source = InMemoryMeasurementSource()
        self.service = EvaluationService(engine, self.source, roster)

    def test_partial_failure(self):
        """测试单条失败不影响其他记录"""
        result = self.service.submit_batch([
            {"student_id": 1, "year": 2024, "values": {"sit_up": 85}},
            {"student_id": 999, "year": 2024, "values": {"sit_up": 85}},
            {"student_id": 2, "year": 2024, "values": {"fifty_run": 8.2}},
            {"student_id": 3, "values": {"sit_up": 70}},
        ])

        assert result['success'] == 2
        assert [item['student_id'] for item in result['failed']] == [999, 3]
        assert "999" in result['failed'][0]['error']
        assert len(self.source.records) == 2

    def test_empty_batch(self):
        """测试空批次"""
        assert self.service.submit_batch([]) == {'success': 0, 'failed': []}
